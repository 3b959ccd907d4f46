"""
Tests for authentication API endpoints.
"""

from django.urls import reverse

from authentication.tests.factories import UserFactory


class TestTokenObtain:
    def test_login_returns_jwt_pair(self, api_client, db):
        UserFactory(email="login@uni.example.edu", password="S3cret-pass!")

        response = api_client.post(
            reverse("authentication:token-obtain"),
            {"email": "login@uni.example.edu", "password": "S3cret-pass!"},
            format="json",
        )

        assert response.status_code == 200
        assert "access" in response.data
        assert "refresh" in response.data


class TestMeView:
    def test_requires_authentication(self, api_client, db):
        response = api_client.get(reverse("authentication:me"))

        assert response.status_code == 401

    def test_returns_user_with_profile(self, authenticated_client, user):
        response = authenticated_client.get(reverse("authentication:me"))

        assert response.status_code == 200
        assert response.data["email"] == user.email
        assert "display_name" in response.data["profile"]


class TestPushTokenView:
    def test_register_expo_token(self, authenticated_client, user):
        response = authenticated_client.post(
            reverse("authentication:push-token"),
            {"token": "ExponentPushToken[abc]", "token_type": "expo"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["has_push_target"] is True
        assert "push_token" not in response.data

    def test_invalid_web_subscription_is_400(self, authenticated_client):
        response = authenticated_client.post(
            reverse("authentication:push-token"),
            {"token": "garbage", "token_type": "web"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "INVALID_SUBSCRIPTION"

    def test_delete_clears_token(self, authenticated_client, user):
        authenticated_client.post(
            reverse("authentication:push-token"),
            {"token": "ExponentPushToken[abc]", "token_type": "expo"},
            format="json",
        )

        response = authenticated_client.delete(reverse("authentication:push-token"))

        assert response.status_code == 204
        user.profile.refresh_from_db()
        assert user.profile.push_token == ""
