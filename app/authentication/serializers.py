"""
Serializers for authentication models.

Related files:
    - views.py: Views that use these serializers
    - services.py: PushTokenService
"""

from rest_framework import serializers

from authentication.models import Profile, PushTokenType, User


class ProfileSerializer(serializers.ModelSerializer):
    """Public profile fields (push token excluded)."""

    display_name = serializers.CharField(read_only=True)
    has_push_target = serializers.BooleanField(read_only=True)

    class Meta:
        model = Profile
        fields = [
            "username",
            "first_name",
            "last_name",
            "display_name",
            "avatar_url",
            "university",
            "push_token_type",
            "has_push_target",
        ]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """Current user with nested profile."""

    profile = ProfileSerializer(read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "date_joined", "profile"]
        read_only_fields = fields


class PushTokenSerializer(serializers.Serializer):
    """Input for push token registration."""

    token = serializers.CharField(
        help_text="Web Push subscription JSON or Expo push token",
    )
    token_type = serializers.ChoiceField(
        choices=PushTokenType.choices,
        default=PushTokenType.WEB,
        help_text="Channel the token belongs to",
    )
