"""
Push delivery channels.

Channels:
    WebPushChannel: Browser Web Push with VAPID (pywebpush)
    ExpoPushChannel: Expo push gateway over HTTPS (requests)
    FcmPushChannel: Firebase Cloud Messaging HTTP v1 with a service account
        (PyJWT assertion exchanged for an OAuth token, requests)

Each channel takes the receiver's stored token and a PushPayload, and
either returns normally or raises DeliveryError. A DeliveryError with
code ``invalid_token`` means the gateway no longer knows the token and
it should be cleared from the profile.

Usage:
    from notifications.push import PushPayload, get_channel

    channel = get_channel(profile.push_token_type)
    channel.send(profile.push_token, payload)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import jwt
import requests
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from pywebpush import WebPushException, webpush

from authentication.models import PushTokenType
from core.exceptions import ExternalServiceError
from notifications.constants import DELIVERY_ERROR_CODES, PUSH_CONFIG

logger = logging.getLogger(__name__)


class DeliveryError(ExternalServiceError):
    """
    Push delivery failure.

    ``is_permanent`` errors fail the same way on every retry.
    """

    def __init__(
        self,
        message: str,
        code: str,
        is_permanent: bool = False,
        service_name: str | None = None,
    ):
        super().__init__(message, error_code=code, service_name=service_name)
        self.code = code
        self.is_permanent = is_permanent

    @property
    def is_invalid_token(self) -> bool:
        return self.code == DELIVERY_ERROR_CODES.INVALID_TOKEN


@dataclass
class PushPayload:
    """Message notification as sent to every gateway."""

    chat_id: int
    sender_id: int
    message_id: int
    title: str
    body: str
    sender_name: str
    type: str = PUSH_CONFIG.NOTIFICATION_TYPE

    @property
    def data(self) -> dict[str, Any]:
        return {
            "conversation_id": str(self.chat_id),
            "sender_name": self.sender_name,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "chat_id": str(self.chat_id),
            "sender_id": str(self.sender_id),
            "message_id": str(self.message_id),
            "title": self.title,
            "body": self.body,
            "data": self.data,
        }


def _timeout() -> int:
    return getattr(settings, "PUSH_REQUEST_TIMEOUT", PUSH_CONFIG.DEFAULT_TIMEOUT_SECONDS)


# =============================================================================
# Web Push
# =============================================================================


class WebPushChannel:
    """
    Web Push to a browser PushSubscription.

    The stored token is the subscription JSON
    ({"endpoint": ..., "keys": {"p256dh": ..., "auth": ...}}).
    """

    token_type = PushTokenType.WEB
    service_name = "webpush"

    def _error(self, message: str, code: str, is_permanent: bool = False) -> DeliveryError:
        return DeliveryError(message, code=code, is_permanent=is_permanent, service_name=self.service_name)

    def send(self, token: str, payload: PushPayload) -> None:
        private_key = getattr(settings, "WEBPUSH_VAPID_PRIVATE_KEY", "")
        subject = getattr(settings, "WEBPUSH_VAPID_SUBJECT", "")
        if not private_key or not subject:
            raise self._error("Web Push VAPID keys are not configured", DELIVERY_ERROR_CODES.NOT_CONFIGURED)

        try:
            subscription = json.loads(token)
        except ValueError:
            raise self._error(
                "Stored web push subscription is not valid JSON",
                DELIVERY_ERROR_CODES.INVALID_TOKEN,
                is_permanent=True,
            ) from None

        message = {
            **payload.to_dict(),
            "icon": PUSH_CONFIG.WEB_ICON,
            "badge": PUSH_CONFIG.WEB_BADGE,
            "tag": str(payload.chat_id),
            "renotify": True,
        }

        try:
            webpush(
                subscription_info=subscription,
                data=json.dumps(message),
                vapid_private_key=private_key,
                vapid_claims={"sub": subject},
                ttl=PUSH_CONFIG.WEB_TTL_SECONDS,
                timeout=_timeout(),
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            if status_code in (404, 410):
                raise self._error(
                    f"Web push subscription expired ({status_code})",
                    DELIVERY_ERROR_CODES.INVALID_TOKEN,
                    is_permanent=True,
                ) from e
            if status_code == 429:
                raise self._error(
                    "Web push service rate limited the request",
                    DELIVERY_ERROR_CODES.RATE_LIMITED,
                ) from e
            raise self._error(f"Web push failed: {e}", DELIVERY_ERROR_CODES.PROVIDER_ERROR) from e
        except requests.Timeout as e:
            raise self._error("Web push timed out", DELIVERY_ERROR_CODES.TIMEOUT) from e
        except requests.RequestException as e:
            raise self._error(
                f"Web push connection failed: {e}",
                DELIVERY_ERROR_CODES.CONNECTION_ERROR,
            ) from e


# =============================================================================
# Expo
# =============================================================================


class ExpoPushChannel:
    """Expo push gateway for the mobile app (ExponentPushToken[...])."""

    token_type = PushTokenType.EXPO
    service_name = "expo"

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return getattr(settings, "EXPO_PUSH_URL", PUSH_CONFIG.DEFAULT_EXPO_PUSH_URL)

    def _error(self, message: str, code: str, is_permanent: bool = False) -> DeliveryError:
        return DeliveryError(message, code=code, is_permanent=is_permanent, service_name=self.service_name)

    def build_message(self, token: str, payload: PushPayload) -> dict[str, Any]:
        full = payload.to_dict()
        return {
            "to": token,
            "title": payload.title,
            "body": payload.body,
            "data": {key: value for key, value in full.items() if key not in ("title", "body")},
            "sound": PUSH_CONFIG.EXPO_SOUND,
            "badge": PUSH_CONFIG.EXPO_BADGE,
            "priority": PUSH_CONFIG.EXPO_PRIORITY,
            "channelId": "default",
        }

    def send(self, token: str, payload: PushPayload) -> None:
        try:
            response = self.session.post(
                self.url,
                json=self.build_message(token, payload),
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=_timeout(),
            )
        except requests.Timeout as e:
            raise self._error("Expo push timed out", DELIVERY_ERROR_CODES.TIMEOUT) from e
        except requests.RequestException as e:
            raise self._error(
                f"Expo push connection failed: {e}",
                DELIVERY_ERROR_CODES.CONNECTION_ERROR,
            ) from e

        if response.status_code == 429:
            raise self._error("Expo rate limited the request", DELIVERY_ERROR_CODES.RATE_LIMITED)
        if response.status_code >= 400:
            raise self._error(
                f"Expo push returned HTTP {response.status_code}",
                DELIVERY_ERROR_CODES.PROVIDER_ERROR,
            )

        try:
            ticket = response.json().get("data")
        except ValueError:
            raise self._error(
                "Expo push returned a non-JSON body",
                DELIVERY_ERROR_CODES.PROVIDER_ERROR,
            ) from None
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else None

        if not ticket or ticket.get("status") != "error":
            return

        details = ticket.get("details") or {}
        if details.get("error") == "DeviceNotRegistered":
            raise self._error(
                ticket.get("message", "Device is not registered"),
                DELIVERY_ERROR_CODES.INVALID_TOKEN,
                is_permanent=True,
            )
        raise self._error(
            ticket.get("message", "Expo push ticket error"),
            DELIVERY_ERROR_CODES.PROVIDER_ERROR,
        )


# =============================================================================
# FCM
# =============================================================================


class FcmPushChannel:
    """
    Firebase Cloud Messaging (HTTP v1) for native Android/iOS builds.

    Authenticates with the service account in FCM_SERVICE_ACCOUNT_KEY
    (the JSON key file's contents). The OAuth access token is cached
    until shortly before it expires.
    """

    token_type = PushTokenType.FCM
    service_name = "fcm"

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def _error(self, message: str, code: str, is_permanent: bool = False) -> DeliveryError:
        return DeliveryError(message, code=code, is_permanent=is_permanent, service_name=self.service_name)

    def service_account(self) -> dict[str, Any]:
        raw = getattr(settings, "FCM_SERVICE_ACCOUNT_KEY", "")
        if not raw:
            raise self._error("FCM service account is not configured", DELIVERY_ERROR_CODES.NOT_CONFIGURED)
        try:
            account = json.loads(raw)
        except ValueError:
            raise self._error(
                "FCM service account key is not valid JSON",
                DELIVERY_ERROR_CODES.NOT_CONFIGURED,
            ) from None

        missing = [key for key in ("project_id", "private_key", "client_email") if not account.get(key)]
        if missing:
            raise self._error(
                f"FCM service account key is missing {', '.join(missing)}",
                DELIVERY_ERROR_CODES.NOT_CONFIGURED,
            )
        return account

    def access_token(self, account: dict[str, Any]) -> str:
        cached = cache.get(PUSH_CONFIG.FCM_ACCESS_TOKEN_CACHE_KEY)
        if cached:
            return cached

        token_uri = account.get("token_uri") or PUSH_CONFIG.FCM_TOKEN_URL
        issued_at = int(timezone.now().timestamp())
        try:
            assertion = jwt.encode(
                {
                    "iss": account["client_email"],
                    "scope": PUSH_CONFIG.FCM_SCOPE,
                    "aud": token_uri,
                    "iat": issued_at,
                    "exp": issued_at + PUSH_CONFIG.FCM_ASSERTION_LIFETIME_SECONDS,
                },
                account["private_key"],
                algorithm="RS256",
            )
        except (ValueError, jwt.PyJWTError) as e:
            raise self._error(
                f"FCM service account key could not sign: {e}",
                DELIVERY_ERROR_CODES.NOT_CONFIGURED,
            ) from e

        try:
            response = self.session.post(
                token_uri,
                data={"grant_type": PUSH_CONFIG.FCM_GRANT_TYPE, "assertion": assertion},
                timeout=_timeout(),
            )
        except requests.Timeout as e:
            raise self._error("FCM token exchange timed out", DELIVERY_ERROR_CODES.TIMEOUT) from e
        except requests.RequestException as e:
            raise self._error(
                f"FCM token exchange failed: {e}",
                DELIVERY_ERROR_CODES.CONNECTION_ERROR,
            ) from e

        if response.status_code >= 400:
            raise self._error(
                f"FCM token exchange returned HTTP {response.status_code}",
                DELIVERY_ERROR_CODES.PROVIDER_ERROR,
            )

        try:
            body = response.json()
        except ValueError:
            raise self._error(
                "FCM token exchange returned a non-JSON body",
                DELIVERY_ERROR_CODES.PROVIDER_ERROR,
            ) from None
        token = body.get("access_token")
        if not token:
            raise self._error("FCM token exchange returned no access token", DELIVERY_ERROR_CODES.PROVIDER_ERROR)

        expires_in = int(body.get("expires_in", PUSH_CONFIG.FCM_ASSERTION_LIFETIME_SECONDS))
        cache.set(
            PUSH_CONFIG.FCM_ACCESS_TOKEN_CACHE_KEY,
            token,
            timeout=max(expires_in - PUSH_CONFIG.FCM_TOKEN_EXPIRY_MARGIN_SECONDS, 1),
        )
        return token

    def build_message(self, token: str, payload: PushPayload) -> dict[str, Any]:
        full = payload.to_dict()
        # FCM data values must be strings
        data = {key: value for key, value in full.items() if key not in ("title", "body", "data")}
        data.update(payload.data)
        return {
            "message": {
                "token": token,
                "notification": {"title": payload.title, "body": payload.body},
                "data": data,
                "android": {
                    "priority": "high",
                    "notification": {
                        "sound": PUSH_CONFIG.EXPO_SOUND,
                        "click_action": PUSH_CONFIG.FCM_CLICK_ACTION,
                    },
                },
                "apns": {
                    "payload": {
                        "aps": {"sound": PUSH_CONFIG.EXPO_SOUND, "badge": PUSH_CONFIG.EXPO_BADGE},
                    },
                },
            }
        }

    def send(self, token: str, payload: PushPayload) -> None:
        account = self.service_account()
        access_token = self.access_token(account)
        url = PUSH_CONFIG.FCM_SEND_URL.format(project_id=account["project_id"])

        try:
            response = self.session.post(
                url,
                json=self.build_message(token, payload),
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
                timeout=_timeout(),
            )
        except requests.Timeout as e:
            raise self._error("FCM push timed out", DELIVERY_ERROR_CODES.TIMEOUT) from e
        except requests.RequestException as e:
            raise self._error(
                f"FCM push connection failed: {e}",
                DELIVERY_ERROR_CODES.CONNECTION_ERROR,
            ) from e

        if response.status_code < 400:
            return

        try:
            error = response.json().get("error") or {}
        except ValueError:
            error = {}
        error_codes = {detail.get("errorCode") for detail in error.get("details") or []}

        if response.status_code == 404 or error_codes & PUSH_CONFIG.FCM_INVALID_TOKEN_ERRORS:
            raise self._error(
                error.get("message", "FCM token is not registered"),
                DELIVERY_ERROR_CODES.INVALID_TOKEN,
                is_permanent=True,
            )
        if response.status_code == 401:
            # Cached access token was revoked; fetch a fresh one next pass
            cache.delete(PUSH_CONFIG.FCM_ACCESS_TOKEN_CACHE_KEY)
        if response.status_code == 429:
            raise self._error("FCM rate limited the request", DELIVERY_ERROR_CODES.RATE_LIMITED)
        raise self._error(
            error.get("message", f"FCM push returned HTTP {response.status_code}"),
            DELIVERY_ERROR_CODES.PROVIDER_ERROR,
        )


_CHANNELS = {
    PushTokenType.WEB: WebPushChannel,
    PushTokenType.EXPO: ExpoPushChannel,
    PushTokenType.FCM: FcmPushChannel,
}


def get_channel(token_type: str):
    """Channel instance for a profile's push_token_type."""
    channel_class = _CHANNELS.get(token_type)
    if channel_class is None:
        raise DeliveryError(
            f"Unsupported push token type: {token_type!r}",
            code=DELIVERY_ERROR_CODES.UNSUPPORTED_TOKEN_TYPE,
            is_permanent=True,
        )
    return channel_class()
