"""
Views for authentication endpoints.

Endpoints:
    GET    /api/v1/auth/me/          - Current user with profile
    POST   /api/v1/auth/push-token/  - Register push token
    DELETE /api/v1/auth/push-token/  - Unregister push token

JWT login and refresh come from simplejwt (see urls.py).
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import (
    ProfileSerializer,
    PushTokenSerializer,
    UserSerializer,
)
from authentication.services import PushTokenService


class MeView(APIView):
    """Current user with profile."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get current user",
        tags=["Auth"],
        responses={200: UserSerializer},
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)


class PushTokenView(APIView):
    """
    Register or remove the current user's push target.

    URL: /api/v1/auth/push-token/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Register push token",
        description=(
            "Store a Web Push subscription (JSON string) or an Expo push token. "
            "Replaces any previous token."
        ),
        tags=["Auth"],
        request=PushTokenSerializer,
        responses={200: ProfileSerializer},
    )
    def post(self, request):
        serializer = PushTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PushTokenService.register(
            request.user,
            token=serializer.validated_data["token"],
            token_type=serializer.validated_data["token_type"],
        )
        if not result.success:
            return Response(
                {"error": result.error, "error_code": result.error_code},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response(ProfileSerializer(result.data).data)

    @extend_schema(
        summary="Unregister push token",
        tags=["Auth"],
        responses={204: None},
    )
    def delete(self, request):
        PushTokenService.unregister(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
