"""
Authentication application.

Identity for the chat core: email-based users, their public profile and
their push delivery target.

Key components:
    - User model: Custom email-based user authentication
    - Profile model: Display identity and push token
    - PushTokenService: Register/unregister push tokens

Usage:
    from authentication.models import User, Profile
    from authentication.services import PushTokenService
"""
