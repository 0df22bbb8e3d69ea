"""
WebSocket gateway for the support chat.

One connection per client session at ``ws/support-chat/``.  The
connection is authenticated at handshake by the JWT Channels middleware
(``common.channels_jwt_auth.JWTAuthMiddlewareStack``); anonymous
handshakes are closed with code 4401.

On connect the consumer records presence, joins the caller's personal
group (``support_user_<id>``) and the presence group, and announces
``presence:online`` when this is the identity's first live connection.

Message Formats
---------------
Every frame is a JSON object whose ``type`` is the event name:

>>> {"type": "conversation:join", "conversationId": 7}
<<< {"type": "conversation:joined", "conversationId": 7}

>>> {"type": "message:send", "conversationId": 7, "messageType": "text", "content": "hi", "tempId": "c-1"}
<<< {"type": "message:new", "conversationId": 7, "message": {...}}        (whole room, sender included)
<<< {"type": "message:sent", "messageId": 42, "timestamp": "...", "tempId": "c-1"}

>>> {"type": "message:read", "messageId": 42, "conversationId": 7}
<<< {"type": "message:read-receipt", "conversationId": 7, "messageId": 42, "readBy": 3, "readAt": "..."}

Rejected operations answer the caller only and leave the connection open:

<<< {"type": "error", "event": "message:send", "code": "authorization_error", "message": "..."}

Implementation Notes
--------------------
- ORM work runs through ``database_sync_to_async`` and the service layer.
- A message is broadcast only after it has been committed, which keeps
  per-conversation delivery in append order.
- Group frames all arrive through ``chat_event``; an ``exclude`` channel
  lets typing indicators skip their sender.
- ``conversation:unassigned`` and ``conversation:deleted`` drop the
  connection from that conversation's room before being relayed.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from users.models import display_name

from . import events, receipts, services
from .exceptions import CHAT_ERRORS, AuthenticationError, ValidationError
from .presence import record_last_seen, registry
from .serializers import MessageSerializer

logger = logging.getLogger(__name__)

# verb used in the generic failure message of each event
ACTIONS = {
    "conversation:join": "join conversation",
    "conversation:leave": "leave conversation",
    "message:send": "send message",
    "typing:start": "send typing indicator",
    "typing:stop": "send typing indicator",
    "message:read": "mark message as read",
    "conversation:mark-all-read": "mark conversation as read",
}

# server frames that end this connection's membership of a conversation room
ROOM_CLOSING_EVENTS = ("conversation:unassigned", "conversation:deleted")


def authenticated_user(scope):
    user = scope.get("user")
    if not user or not user.is_authenticated:
        raise AuthenticationError(scope.get("auth_error") or "Authentication required")
    return user


def _require_id(content: Dict[str, Any], key: str) -> int:
    value = content.get(key)
    if isinstance(value, bool):
        value = None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{key}' is required and must be an integer")


def _send_message(conversation_id: int, user, content: Dict[str, Any]):
    message, created = services.append_message(
        conversation_id,
        user,
        message_type=content.get("messageType") or content.get("message_type"),
        content=content.get("content"),
        media_ref=content.get("mediaId") or content.get("mediaRef"),
        client_message_id=content.get("tempId"),
    )
    recipient_id = message.conversation.other_participant_id(user.pk)
    return message, created, recipient_id, MessageSerializer(message).data


class SupportChatConsumer(AsyncJsonWebsocketConsumer):
    """Realtime gateway for support conversations."""

    async def connect(self) -> None:
        try:
            user = authenticated_user(self.scope)
        except AuthenticationError as exc:
            logger.warning("Rejected support chat connection: %s", exc.detail)
            await self.close(code=4401)  # Unauthorized
            return

        self.user = user
        self.user_name = await database_sync_to_async(display_name)(user)
        self.personal_group = events.user_group(user.pk)
        self.rooms: set[int] = set()

        await self.accept()
        await self.channel_layer.group_add(self.personal_group, self.channel_name)
        await self.channel_layer.group_add(events.PRESENCE_GROUP, self.channel_name)

        came_online = registry.set_online(user.pk, self.channel_name)
        await database_sync_to_async(record_last_seen)(user.pk)
        logger.info("User %s connected on %s", user.pk, self.channel_name)
        if came_online:
            await self.channel_layer.group_send(
                events.PRESENCE_GROUP,
                events.group_message(events.presence("presence:online", user.pk)),
            )

    async def disconnect(self, code: int) -> None:
        if not hasattr(self, "user"):
            return
        for conversation_id in list(self.rooms):
            await self.channel_layer.group_discard(events.conversation_group(conversation_id), self.channel_name)
        self.rooms.clear()
        await self.channel_layer.group_discard(self.personal_group, self.channel_name)
        await self.channel_layer.group_discard(events.PRESENCE_GROUP, self.channel_name)

        went_offline = registry.set_offline(self.user.pk, self.channel_name)
        await database_sync_to_async(record_last_seen)(self.user.pk)
        logger.info("User %s disconnected (code=%s)", self.user.pk, code)
        if went_offline:
            await self.channel_layer.group_send(
                events.PRESENCE_GROUP,
                events.group_message(events.presence("presence:offline", self.user.pk)),
            )

    # override to reply with an error instead of dropping the socket on bad JSON
    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        if not text_data:
            return
        try:
            content = json.loads(text_data)
        except ValueError:
            await self.send_json(events.error(None, "invalid_json", "Invalid JSON"))
            return
        await self.receive_json(content)

    async def receive_json(self, content: Any, **kwargs: Any) -> None:
        event = content.get("type") if isinstance(content, dict) else None
        handler = self.handlers.get(event)
        if handler is None:
            await self.send_json(events.error(event, "unknown_event", f"Unknown event: {event}"))
            return
        try:
            await handler(self, content)
        except CHAT_ERRORS as exc:
            codes = exc.get_codes()
            await self.send_json(
                events.error(event, codes if isinstance(codes, str) else exc.default_code, str(exc.detail))
            )
        except Exception:
            logger.exception("Failed to handle %s for user %s", event, self.user.pk)
            await self.send_json(events.error(event, "server_error", f"Failed to {ACTIONS[event]}"))

    # ---------- rooms ----------
    async def on_join(self, content: Dict[str, Any]) -> None:
        conversation_id = _require_id(content, "conversationId")
        await database_sync_to_async(services.get_conversation)(conversation_id, self.user, allow_admin=False)
        await self.channel_layer.group_add(events.conversation_group(conversation_id), self.channel_name)
        self.rooms.add(conversation_id)
        registry.join_room(self.channel_name, conversation_id)
        logger.debug("User %s joined conversation %s", self.user.pk, conversation_id)
        await self.send_json(events.room_ack("conversation:joined", conversation_id))

    async def on_leave(self, content: Dict[str, Any]) -> None:
        conversation_id = _require_id(content, "conversationId")
        await self._leave_room(conversation_id)
        await self.send_json(events.room_ack("conversation:left", conversation_id))

    async def _leave_room(self, conversation_id: int) -> None:
        await self.channel_layer.group_discard(events.conversation_group(conversation_id), self.channel_name)
        self.rooms.discard(conversation_id)
        registry.leave_room(self.channel_name, conversation_id)
        logger.debug("User %s left conversation %s", self.user.pk, conversation_id)

    # ---------- messages ----------
    async def on_send(self, content: Dict[str, Any]) -> None:
        conversation_id = _require_id(content, "conversationId")
        message, created, recipient_id, data = await database_sync_to_async(_send_message)(
            conversation_id, self.user, content
        )
        if created:
            await self.channel_layer.group_send(
                events.conversation_group(conversation_id),
                events.group_message(events.message_new(conversation_id, data)),
            )
            if registry.is_online(recipient_id) and not registry.is_in_room(recipient_id, conversation_id):
                await self.channel_layer.group_send(
                    events.user_group(recipient_id),
                    events.group_message(
                        events.notification_new_message(conversation_id, data, data["sender"])
                    ),
                )
        await self.send_json(events.message_sent(message.pk, message.created_at, message.client_message_id))

    async def on_typing(self, content: Dict[str, Any]) -> None:
        conversation_id = _require_id(content, "conversationId")
        if conversation_id not in self.rooms:
            raise ValidationError("Join the conversation before sending typing indicators")
        if content["type"] == "typing:start":
            frame = events.typing("typing:user-typing", conversation_id, self.user.pk, self.user_name)
        else:
            frame = events.typing("typing:user-stopped", conversation_id, self.user.pk)
        await self.channel_layer.group_send(
            events.conversation_group(conversation_id),
            events.group_message(frame, exclude=self.channel_name),
        )

    # ---------- read receipts ----------
    async def on_read(self, content: Dict[str, Any]) -> None:
        message_id = _require_id(content, "messageId")
        conversation_id: Optional[int] = None
        if content.get("conversationId") is not None:
            conversation_id = _require_id(content, "conversationId")
        message, changed = await database_sync_to_async(receipts.mark_read)(
            message_id, self.user, conversation_id
        )
        if changed:
            await self.channel_layer.group_send(
                events.conversation_group(message.conversation_id),
                events.group_message(
                    events.read_receipt(message.conversation_id, message.pk, self.user.pk, message.read_at)
                ),
            )

    async def on_mark_all_read(self, content: Dict[str, Any]) -> None:
        conversation_id = _require_id(content, "conversationId")
        conversation, count, read_at = await database_sync_to_async(receipts.mark_conversation_read)(
            conversation_id, self.user
        )
        await self.channel_layer.group_send(
            events.conversation_group(conversation.pk),
            events.group_message(events.all_read(conversation.pk, self.user.pk, read_at, count)),
        )

    handlers = {
        "conversation:join": on_join,
        "conversation:leave": on_leave,
        "message:send": on_send,
        "typing:start": on_typing,
        "typing:stop": on_typing,
        "message:read": on_read,
        "conversation:mark-all-read": on_mark_all_read,
    }

    # ---------- group fan-out ----------
    async def chat_event(self, event: Dict[str, Any]) -> None:
        """Handler for group broadcasts of type 'chat.event'."""
        if event.get("exclude") == self.channel_name:
            return
        frame = event["event"]
        if frame.get("type") in ROOM_CLOSING_EVENTS and frame.get("conversationId") in self.rooms:
            await self._leave_room(frame["conversationId"])
        await self.send_json(frame)
