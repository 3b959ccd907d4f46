"""
Tests for authentication models.

Covers profile auto-creation and the display-name fallback used in
conversation summaries and push notification titles.
"""

import pytest

from authentication.models import DEFAULT_DISPLAY_NAME, Profile
from authentication.tests.factories import ProfileFactory, UserFactory


class TestProfileCreation:
    """Verifies: every user gets exactly one profile."""

    def test_new_user_gets_profile(self, db):
        user = UserFactory()

        assert Profile.objects.filter(user=user).count() == 1

    def test_profile_factory_updates_signal_profile(self, db):
        """
        Why it matters: a second profile row would break the OneToOne link
        the push worker reads from.
        """
        profile = ProfileFactory(first_name="Ada", last_name="Lovelace")

        assert Profile.objects.filter(user=profile.user).count() == 1
        assert profile.user.profile.first_name == "Ada"


class TestProfileDisplayName:
    """Verifies: full name, then username, then placeholder."""

    def test_full_name_preferred(self, db):
        profile = ProfileFactory(first_name="Ada", last_name="Lovelace", username="ada")

        assert profile.display_name == "Ada Lovelace"

    def test_username_when_no_name(self, db):
        profile = ProfileFactory(first_name="", last_name="", username="ada")

        assert profile.display_name == "ada"

    def test_placeholder_when_nothing_set(self, db):
        profile = ProfileFactory(first_name="", last_name="", username="")

        assert profile.display_name == DEFAULT_DISPLAY_NAME

    def test_has_push_target_follows_token(self, db):
        profile = ProfileFactory(push_token="ExponentPushToken[x]", push_token_type="expo")

        assert profile.has_push_target is True
        profile.push_token = ""
        assert profile.has_push_target is False


class TestUserManager:
    def test_create_user_requires_email(self, db):
        from authentication.models import User

        with pytest.raises(ValueError):
            User.objects.create_user(email="")

    def test_create_user_without_password_is_unusable(self, db):
        from authentication.models import User

        user = User.objects.create_user(email="nopass@uni.example.edu")

        assert user.has_usable_password() is False
