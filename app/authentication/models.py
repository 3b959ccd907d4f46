"""
Authentication models.

This module defines the identity models the chat core reads from:
- User: Custom user model with email-based authentication (slim, auth-focused)
- Profile: Display identity and push delivery target (OneToOne with User)

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: PushTokenService (register/unregister push targets)
    - signals.py: Auto-create profile on user creation

The chat core treats Profile as read-only, except that the notification
worker clears a push token the gateway reports as no longer registered.
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.conf import settings
from django.db import models

from core.models import BaseModel
from authentication.managers import UserManager

# Fallback sender name when a profile has neither a full name nor a username
DEFAULT_DISPLAY_NAME = "Someone"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Profile data (name, avatar, university, push token) is stored in the
    Profile model.

    Usage:
        user = User.objects.create_user(
            email='student@uni.edu',
            password='securepassword'
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return the profile's full name, or the email when unset."""
        try:
            return self.profile.full_name or self.email
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        try:
            return self.profile.first_name or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]


class PushTokenType(models.TextChoices):
    """Delivery channel a push token belongs to."""

    WEB = "web", "Web Push"
    EXPO = "expo", "Expo (mobile)"
    FCM = "fcm", "Firebase Cloud Messaging"


class Profile(BaseModel):
    """
    Public identity and push target for a user.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        username: Public handle
        first_name / last_name: Display name parts
        avatar_url: Hosted avatar image URL
        university: University the student belongs to
        push_token: Opaque delivery address (Web Push subscription JSON or
            Expo push token); empty means "cannot push"
        push_token_type: Channel the token belongs to
        push_token_updated_at: When the token was last registered or cleared

    Note:
        Profile is automatically created via signals when a User is created.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )
    username = models.CharField(
        max_length=30,
        blank=True,
        db_index=True,
        help_text="Public username",
    )
    first_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's first name",
    )
    last_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's last name",
    )
    avatar_url = models.URLField(
        max_length=500,
        blank=True,
        help_text="URL of the user's avatar image",
    )
    university = models.CharField(
        max_length=200,
        blank=True,
        help_text="University the user attends",
    )
    push_token = models.TextField(
        blank=True,
        help_text="Push delivery address (Web Push subscription JSON, Expo or FCM token)",
    )
    push_token_type = models.CharField(
        max_length=10,
        choices=PushTokenType.choices,
        blank=True,
        help_text="Channel the push token belongs to",
    )
    push_token_updated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the push token was last changed",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"

    def __str__(self):
        return self.username or str(self.user)

    @property
    def full_name(self):
        """Return full name or empty string."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self):
        """Name shown to other users: full name, then username, then a placeholder."""
        return self.full_name or self.username or DEFAULT_DISPLAY_NAME

    @property
    def has_push_target(self):
        return bool(self.push_token)
