"""
Constants for push notification dispatch.

Import example:
    from notifications.constants import DISPATCH_CONFIG, PUSH_CONFIG
"""

from typing import Final


class DISPATCH_CONFIG:
    """Configuration for the dispatch worker."""

    # Rows fetched per dispatch pass
    BATCH_SIZE: Final[int] = 100

    # Rows at this many attempts are no longer retried
    MAX_DELIVERY_ATTEMPTS: Final[int] = 3

    PREVIEW_LENGTH: Final[int] = 100
    EMPTY_PREVIEW: Final[str] = "New message"
    DEFAULT_APP_NAME: Final[str] = "Unigramm"

    # Celery-beat schedule name
    PERIODIC_TASK_NAME: Final[str] = "Dispatch Message Notifications"


class PUSH_CONFIG:
    """Push gateway payload settings."""

    NOTIFICATION_TYPE: Final[str] = "message"

    DEFAULT_EXPO_PUSH_URL: Final[str] = "https://exp.host/--/api/v2/push/send"
    EXPO_SOUND: Final[str] = "default"
    EXPO_BADGE: Final[int] = 1
    EXPO_PRIORITY: Final[str] = "high"

    WEB_ICON: Final[str] = "/favicon.ico"
    WEB_BADGE: Final[str] = "/favicon.ico"
    WEB_TTL_SECONDS: Final[int] = 86400

    FCM_SEND_URL: Final[str] = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
    FCM_TOKEN_URL: Final[str] = "https://oauth2.googleapis.com/token"
    FCM_SCOPE: Final[str] = "https://www.googleapis.com/auth/firebase.messaging"
    FCM_GRANT_TYPE: Final[str] = "urn:ietf:params:oauth:grant-type:jwt-bearer"
    FCM_ASSERTION_LIFETIME_SECONDS: Final[int] = 3600
    FCM_TOKEN_EXPIRY_MARGIN_SECONDS: Final[int] = 60
    FCM_ACCESS_TOKEN_CACHE_KEY: Final[str] = "notifications:fcm_access_token"
    FCM_CLICK_ACTION: Final[str] = "FLUTTER_NOTIFICATION_CLICK"
    # Error codes meaning the registration token is gone
    FCM_INVALID_TOKEN_ERRORS: Final[frozenset[str]] = frozenset({"UNREGISTERED", "INVALID_ARGUMENT"})

    DEFAULT_TIMEOUT_SECONDS: Final[int] = 10


class DELIVERY_ERROR_CODES:
    """Codes carried by DeliveryError."""

    INVALID_TOKEN: Final[str] = "invalid_token"
    NOT_CONFIGURED: Final[str] = "not_configured"
    UNSUPPORTED_TOKEN_TYPE: Final[str] = "unsupported_token_type"
    PROVIDER_ERROR: Final[str] = "provider_error"
    CONNECTION_ERROR: Final[str] = "connection_error"
    TIMEOUT: Final[str] = "timeout"
    RATE_LIMITED: Final[str] = "rate_limited"
