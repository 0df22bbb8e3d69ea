"""
Real-time event frames and broadcast groups.

Every frame pushed to a client is a flat JSON object whose ``type`` is
the event name (``message:new``, ``presence:online``, ...).  Frames are
fanned out through channel-layer groups:

* ``support_conversation_<id>``: connections that joined a conversation room
* ``support_user_<id>``: every connection of one identity
* ``support_presence``: every connection

Group messages always use the ``chat.event`` handler, so the consumer
needs a single method to relay any frame.
"""
from __future__ import annotations

from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

PRESENCE_GROUP = "support_presence"


def conversation_group(conversation_id: int) -> str:
    return f"support_conversation_{conversation_id}"


def user_group(user_id: int) -> str:
    return f"support_user_{user_id}"


def group_message(frame: dict, exclude: Optional[str] = None) -> dict:
    """Wrap ``frame`` for ``group_send``; ``exclude`` skips one channel."""
    return {"type": "chat.event", "event": frame, "exclude": exclude}


def broadcast(group: str, frame: dict, exclude: Optional[str] = None) -> None:
    """Synchronous fan-out, for the REST views."""
    async_to_sync(get_channel_layer().group_send)(group, group_message(frame, exclude))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


# ---------- frames ----------
def message_new(conversation_id: int, message: dict) -> dict:
    return {"type": "message:new", "conversationId": conversation_id, "message": message}


def message_sent(message_id: int, timestamp, temp_id: Optional[str] = None) -> dict:
    frame = {"type": "message:sent", "messageId": message_id, "timestamp": _iso(timestamp)}
    if temp_id:
        frame["tempId"] = temp_id
    return frame


def notification_new_message(conversation_id: int, message: dict, sender: dict) -> dict:
    return {
        "type": "notification:new-message",
        "conversationId": conversation_id,
        "message": message,
        "sender": sender,
    }


def message_deleted(conversation_id: int, message_id: int, last_message_id: Optional[int]) -> dict:
    return {
        "type": "message:deleted",
        "conversationId": conversation_id,
        "messageId": message_id,
        "lastMessageId": last_message_id,
    }


def read_receipt(conversation_id: int, message_id: int, reader_id: int, read_at) -> dict:
    return {
        "type": "message:read-receipt",
        "conversationId": conversation_id,
        "messageId": message_id,
        "readBy": reader_id,
        "readAt": _iso(read_at),
    }


def all_read(conversation_id: int, reader_id: int, read_at, count: int) -> dict:
    return {
        "type": "conversation:all-read",
        "conversationId": conversation_id,
        "readBy": reader_id,
        "readAt": _iso(read_at),
        "count": count,
    }


def status_changed(conversation_id: int, status: str, changed_by: int) -> dict:
    return {
        "type": "conversation:status-changed",
        "conversationId": conversation_id,
        "status": status,
        "changedBy": changed_by,
    }


def presence(event: str, identity: int, timestamp=None) -> dict:
    return {"type": event, "identity": identity, "timestamp": _iso(timestamp or timezone.now())}


def typing(event: str, conversation_id: int, user_id: int, user_name: Optional[str] = None) -> dict:
    frame = {"type": event, "conversationId": conversation_id, "userId": user_id}
    if user_name is not None:
        frame["userName"] = user_name
    return frame


def room_ack(event: str, conversation_id: int) -> dict:
    return {"type": event, "conversationId": conversation_id}


def error(event: Optional[str], code: str, message: str) -> dict:
    return {"type": "error", "event": event, "code": code, "message": message}


def conversation_assigned(conversation_id: int, conversation: dict) -> dict:
    return {"type": "conversation:assigned", "conversationId": conversation_id, "conversation": conversation}
