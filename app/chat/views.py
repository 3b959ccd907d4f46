"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation list, get-or-create and per-user actions
- MessageViewSet: History and sending (nested under conversation)
- RecentChatView: The user's recent chat partners

URL Structure:
    /api/v1/chat/conversations/                   GET, POST
    /api/v1/chat/conversations/unread/            GET
    /api/v1/chat/conversations/{id}/read/         POST
    /api/v1/chat/conversations/{id}/clear/        POST
    /api/v1/chat/conversations/{id}/delete/       POST
    /api/v1/chat/conversations/{id}/messages/     GET, POST
    /api/v1/chat/recent/                          GET

Design Decisions:
    - Business logic lives in chat.services; views translate ServiceResult
      failures into {"error", "error_code"} responses
    - Clear and delete only touch the caller's overlay rows, so they are
      actions rather than DELETE on the shared conversation
    - Message history uses offset pagination cut from the newest end
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.serializers import (
    ClearedChatSerializer,
    ConversationCreateSerializer,
    ConversationSerializer,
    ConversationSummarySerializer,
    DeleteChatSerializer,
    DeletedChatSerializer,
    MessageCreateSerializer,
    MessagePageQuerySerializer,
    MessageSerializer,
    RecentChatSerializer,
)
from chat.services import (
    ConversationService,
    MessageService,
    RecentChatService,
    VisibilityService,
    get_user,
)
from core.services import ServiceResult

ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_PARTICIPANT": status.HTTP_403_FORBIDDEN,
    "STORE_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(result: ServiceResult) -> Response:
    return Response(
        {"error": result.error, "error_code": result.error_code},
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        description="Conversations of the current user, most recent activity first. "
        "Chats the user deleted are omitted.",
        tags=["Chat - Conversations"],
        responses={200: ConversationSummarySerializer(many=True)},
    ),
    create=extend_schema(
        operation_id="get_or_create_conversation",
        summary="Get or create a direct conversation",
        description="Returns the existing conversation with the other user, "
        "creating it on first contact. 201 when created, 200 otherwise.",
        tags=["Chat - Conversations"],
        request=ConversationCreateSerializer,
        responses={200: ConversationSerializer, 201: ConversationSerializer},
    ),
)
class ConversationViewSet(viewsets.ViewSet):
    """
    ViewSet for conversations.

    list:
        Conversation summaries for the current user. A store failure
        yields an empty list rather than an error.

    create:
        Get-or-create the conversation with ``user_id``.

    read:
        Reset the caller's unread counter.

    clear:
        Hide all current messages from the caller.

    delete:
        Remove the conversation from the caller's list until the next
        message arrives.

    unread:
        Total unread count across the caller's conversations.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def get_conversation(self, pk):
        return ConversationService.get_for_participant(int(pk), self.request.user)

    def list(self, request):
        result = ConversationService.list_for_user(request.user)
        summaries = result.data if result.success else []
        return Response(ConversationSummarySerializer(summaries, many=True).data)

    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        other_user = get_user(serializer.validated_data["user_id"])
        result = ConversationService.get_or_create_direct(request.user, other_user)
        if not result.success:
            return error_response(result)

        conversation, created = result.data
        return Response(
            ConversationSerializer(conversation).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        tags=["Chat - Conversations"],
        request=None,
        responses={200: OpenApiResponse(description="Previous unread count")},
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = self.get_conversation(pk)
        if not result.success:
            return error_response(result)

        result = MessageService.mark_as_read(result.data, request.user)
        if not result.success:
            return error_response(result)

        return Response({"status": "read", "previous_unread": result.data})

    @extend_schema(
        operation_id="clear_conversation",
        summary="Clear chat history for me",
        description="Messages up to now are hidden from the caller only.",
        tags=["Chat - Conversations"],
        request=None,
        responses={200: ClearedChatSerializer},
    )
    @action(detail=True, methods=["post"])
    def clear(self, request, pk=None):
        result = self.get_conversation(pk)
        if not result.success:
            return error_response(result)

        result = VisibilityService.clear_chat(request.user, result.data)
        if not result.success:
            return error_response(result)

        return Response(ClearedChatSerializer(result.data).data)

    @extend_schema(
        operation_id="delete_conversation_for_me",
        summary="Delete chat for me",
        description="Hides the conversation from the caller's list. "
        "The other participant is unaffected.",
        tags=["Chat - Conversations"],
        request=DeleteChatSerializer,
        responses={200: DeletedChatSerializer},
    )
    @action(detail=True, methods=["post"], url_path="delete")
    def delete_chat(self, request, pk=None):
        serializer = DeleteChatSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_conversation(pk)
        if not result.success:
            return error_response(result)

        result = VisibilityService.delete_chat(
            request.user,
            result.data,
            reason=serializer.validated_data["reason"],
        )
        if not result.success:
            return error_response(result)

        return Response(DeletedChatSerializer(result.data).data)

    @extend_schema(
        operation_id="unread_count",
        summary="Total unread messages",
        tags=["Chat - Conversations"],
        responses={200: OpenApiResponse(description='{"unread_count": int}')},
    )
    @action(detail=False, methods=["get"])
    def unread(self, request):
        return Response({"unread_count": MessageService.get_unread_count(request.user)})


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        description="One page of history, oldest first. Offset 0 is the newest "
        "page; pass the number of loaded messages to fetch older ones.",
        tags=["Chat - Messages"],
        parameters=[
            OpenApiParameter("offset", OpenApiTypes.INT, OpenApiParameter.QUERY),
            OpenApiParameter("limit", OpenApiTypes.INT, OpenApiParameter.QUERY),
        ],
        responses={200: MessageSerializer(many=True)},
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send a message",
        tags=["Chat - Messages"],
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
    ),
)
class MessageViewSet(viewsets.ViewSet):
    """Messages within a conversation."""

    permission_classes = [IsAuthenticated]

    def list(self, request, conversation_pk=None):
        query = MessagePageQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = ConversationService.get_for_participant(int(conversation_pk), request.user)
        if not result.success:
            return error_response(result)

        result = MessageService.fetch_messages(
            result.data,
            request.user,
            offset=query.validated_data["offset"],
            limit=query.validated_data.get("limit"),
        )
        if not result.success:
            return error_response(result)

        return Response(MessageSerializer(result.data, many=True).data)

    def create(self, request, conversation_pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.get_for_participant(int(conversation_pk), request.user)
        if not result.success:
            return error_response(result)

        result = MessageService.send_message(
            result.data,
            request.user,
            serializer.validated_data["content"],
        )
        if not result.success:
            return error_response(result)

        return Response(MessageSerializer(result.data).data, status=status.HTTP_201_CREATED)


class RecentChatView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_recent_chats",
        summary="Recent chats",
        tags=["Chat - Conversations"],
        responses={200: RecentChatSerializer(many=True)},
    )
    def get(self, request):
        recent = RecentChatService.list_for_user(request.user)
        return Response(RecentChatSerializer(recent, many=True).data)
