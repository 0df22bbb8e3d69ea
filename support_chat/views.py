"""
Views for the support chat.

REST fallback for clients without a live WebSocket.  Every endpoint
requires a JWT, answers with the ``{"message": ..., "data": ...}``
envelope and performs the same broadcasts as the WebSocket gateway, so
connected participants see changes made over REST in real time.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from common.pagination import clamp_page_size

from . import events, receipts, services
from .models import Message
from .permissions import IsChatAdmin, IsSupportStaff
from .presence import registry
from .serializers import (
    ConversationSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    ParticipantSerializer,
    ReassignSerializer,
    StatusUpdateSerializer,
)

logger = logging.getLogger(__name__)


def envelope(message: str, data=None, http_status=status.HTTP_200_OK, **extra) -> Response:
    body = {"message": message, "data": data}
    body.update(extra)
    return Response(body, status=http_status)


def _page_args(request, size_key: str):
    default = settings.SUPPORT_CHAT[size_key]
    page_size = clamp_page_size(request.query_params.get("limit", default), default)
    return request.query_params.get("page", 1), page_size


def announce_new_message(message: Message, message_data: dict) -> None:
    """Broadcast a freshly stored message the way the gateway does."""
    conversation = message.conversation
    events.broadcast(
        events.conversation_group(conversation.pk),
        events.message_new(conversation.pk, message_data),
    )
    recipient_id = conversation.other_participant_id(message.sender_id)
    if registry.is_online(recipient_id) and not registry.is_in_room(recipient_id, conversation.pk):
        events.broadcast(
            events.user_group(recipient_id),
            events.notification_new_message(conversation.pk, message_data, message_data["sender"]),
        )


class ConversationListCreateView(APIView):
    """``GET`` lists the caller's conversations, ``POST`` creates or returns one."""

    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(responses=ConversationSerializer(many=True))
    def get(self, request):
        page, page_size = _page_args(request, "CONVERSATION_PAGE_SIZE")
        items, pagination = services.list_conversations(
            request.user, page, page_size, status=request.query_params.get("status")
        )
        data = ConversationSerializer(items, many=True, context={"request": request}).data
        return envelope("Conversations retrieved successfully", data, pagination=pagination)

    @extend_schema(request=None, responses=ConversationSerializer)
    def post(self, request):
        conversation, created = services.create_or_get_conversation(request.user)
        data = ConversationSerializer(conversation, context={"request": request}).data
        if created:
            return envelope("Conversation created successfully", data, status.HTTP_201_CREATED)
        return envelope("Conversation retrieved successfully", data)


class ConversationDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(responses=ConversationSerializer)
    def get(self, request, pk):
        conversation = services.get_conversation(pk, request.user)
        data = ConversationSerializer(conversation, context={"request": request}).data
        return envelope("Conversation retrieved successfully", data)

    def delete(self, request, pk):
        conversation = services.soft_delete_conversation(pk, request.user)
        events.broadcast(
            events.conversation_group(conversation.pk),
            events.room_ack("conversation:deleted", conversation.pk),
        )
        return envelope("Conversation deleted successfully")


class ConversationStatusView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=StatusUpdateSerializer, responses=ConversationSerializer)
    def patch(self, request, pk):
        body = StatusUpdateSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        conversation = services.update_status(pk, body.validated_data["status"], request.user)
        events.broadcast(
            events.conversation_group(conversation.pk),
            events.status_changed(conversation.pk, conversation.status, request.user.pk),
        )
        data = ConversationSerializer(conversation, context={"request": request}).data
        return envelope("Conversation status updated successfully", data)


class ConversationReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, pk):
        conversation, count, read_at = receipts.mark_conversation_read(pk, request.user)
        events.broadcast(
            events.conversation_group(conversation.pk),
            events.all_read(conversation.pk, request.user.pk, read_at, count),
        )
        return envelope("Conversation marked as read", {"conversation_id": conversation.pk, "count": count})


class MessageCreateView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=MessageCreateSerializer, responses=MessageSerializer)
    def post(self, request):
        body = MessageCreateSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        vd = body.validated_data
        message, created = services.append_message(
            vd["conversation_id"],
            request.user,
            message_type=vd["message_type"],
            content=vd.get("content"),
            media_ref=vd.get("media_id"),
            client_message_id=vd.get("temp_id"),
        )
        data = MessageSerializer(message).data
        if not created:
            return envelope("Message already sent", data)
        announce_new_message(message, data)
        return envelope("Message sent successfully", data, status.HTTP_201_CREATED)


class MessageView(APIView):
    """``GET /messages/<conversation id>/`` pages through a conversation;
    ``DELETE /messages/<message id>/`` removes a single message."""

    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(responses=MessageSerializer(many=True))
    def get(self, request, pk):
        page, page_size = _page_args(request, "MESSAGE_PAGE_SIZE")
        items, pagination = services.list_messages(pk, request.user, page, page_size)
        data = MessageSerializer(items, many=True).data
        return envelope("Messages retrieved successfully", data, pagination=pagination)

    def delete(self, request, pk):
        conversation, message_id = services.delete_message(pk, request.user)
        events.broadcast(
            events.conversation_group(conversation.pk),
            events.message_deleted(conversation.pk, message_id, conversation.last_message_id),
        )
        return envelope("Message deleted successfully")


class MessageReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=None, responses=MessageSerializer)
    def patch(self, request, pk):
        message, changed = receipts.mark_read(pk, request.user)
        if changed:
            events.broadcast(
                events.conversation_group(message.conversation_id),
                events.read_receipt(message.conversation_id, message.pk, request.user.pk, message.read_at),
            )
        return envelope("Message marked as read", MessageSerializer(message).data)


class SupportConversationListView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSupportStaff]

    @extend_schema(responses=ConversationSerializer(many=True))
    def get(self, request):
        page, page_size = _page_args(request, "CONVERSATION_PAGE_SIZE")
        items, pagination = services.list_all_conversations(
            request.user,
            page,
            page_size,
            status=request.query_params.get("status"),
            assigned_to=request.query_params.get("assigned_to"),
        )
        data = ConversationSerializer(items, many=True, context={"request": request}).data
        return envelope("Conversations retrieved successfully", data, pagination=pagination)


class ReassignView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsChatAdmin]

    @extend_schema(request=ReassignSerializer, responses=ConversationSerializer)
    def post(self, request):
        body = ReassignSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        conversation, previous_id = services.reassign_conversation(
            body.validated_data["conversation_id"], body.validated_data["new_support_id"], request.user
        )
        data = ConversationSerializer(conversation, context={"request": request}).data
        events.broadcast(
            events.user_group(conversation.assigned_support_id),
            events.conversation_assigned(conversation.pk, data),
        )
        if previous_id != conversation.assigned_support_id:
            events.broadcast(
                events.user_group(previous_id),
                events.room_ack("conversation:unassigned", conversation.pk),
            )
        return envelope("Conversation reassigned successfully", data)


class StatsView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSupportStaff]

    def get(self, request):
        return envelope("Statistics retrieved successfully", services.conversation_stats(request.user))


class PresenceView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSupportStaff]

    @extend_schema(responses=ParticipantSerializer(many=True))
    def get(self, request):
        online_ids = registry.list_online()
        users = get_user_model().objects.filter(pk__in=online_ids).select_related("profile").order_by("id")
        return envelope("Online users retrieved successfully", ParticipantSerializer(users, many=True).data)
