"""
Authentication services.

PushTokenService manages the push delivery target stored on Profile.
The notification worker reads it; clients register it after the browser
or the mobile app grants notification permission.

Usage:
    from authentication.services import PushTokenService

    result = PushTokenService.register(user, token=subscription_json, token_type="web")
    PushTokenService.unregister(user)
"""

from __future__ import annotations

import json

from django.utils import timezone

from authentication.models import Profile, PushTokenType
from core.services import BaseService, ServiceResult


class PushTokenService(BaseService):
    """Register and clear a user's push token."""

    @classmethod
    def register(cls, user, token: str, token_type: str) -> ServiceResult[Profile]:
        """
        Store ``token`` as the user's push target.

        Web tokens must be a Web Push subscription JSON object with an
        ``endpoint`` and ``keys``; Expo and FCM tokens are stored as given.
        """
        token = (token or "").strip()
        if not token:
            return ServiceResult.failure(
                "Push token cannot be empty",
                error_code="EMPTY_TOKEN",
            )
        if token_type not in PushTokenType.values:
            return ServiceResult.failure(
                f"Unsupported push token type: {token_type}",
                error_code="INVALID_TOKEN_TYPE",
            )

        if token_type == PushTokenType.WEB:
            try:
                subscription = json.loads(token)
            except json.JSONDecodeError:
                return ServiceResult.failure(
                    "Web push token must be a subscription JSON object",
                    error_code="INVALID_SUBSCRIPTION",
                )
            if not isinstance(subscription, dict) or not subscription.get("endpoint") or not subscription.get("keys"):
                return ServiceResult.failure(
                    "Web push subscription requires endpoint and keys",
                    error_code="INVALID_SUBSCRIPTION",
                )

        profile, _ = Profile.objects.get_or_create(user=user)
        profile.push_token = token
        profile.push_token_type = token_type
        profile.push_token_updated_at = timezone.now()
        profile.save(update_fields=["push_token", "push_token_type", "push_token_updated_at", "updated_at"])

        cls.get_logger().info(f"Registered {token_type} push token for user {user.id}")
        return ServiceResult.success(profile)

    @classmethod
    def unregister(cls, user) -> ServiceResult[Profile]:
        """Remove the user's push target. Idempotent."""
        profile, _ = Profile.objects.get_or_create(user=user)
        cls.clear_token(profile)
        cls.get_logger().info(f"Unregistered push token for user {user.id}")
        return ServiceResult.success(profile)

    @classmethod
    def clear_token(cls, profile: Profile) -> None:
        """Clear the push target on ``profile`` (also used for gateway-rejected tokens)."""
        profile.push_token = ""
        profile.push_token_type = ""
        profile.push_token_updated_at = timezone.now()
        profile.save(update_fields=["push_token", "push_token_type", "push_token_updated_at", "updated_at"])
