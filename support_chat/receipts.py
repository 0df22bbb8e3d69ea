"""
Read receipts.

Marks messages as read and keeps the reader's unread counter in step.
The counter is touched only after the message row itself flipped from
unread to read, so repeated or concurrent receipts for the same message
decrement it at most once.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.db.models import F
from django.db.models.functions import Greatest
from django.utils import timezone

from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .models import Conversation, Message
from .retry import retry_on_transient_db_error
from .services import get_conversation, get_message

logger = logging.getLogger(__name__)


@retry_on_transient_db_error
def mark_read(message_id, reader, conversation_id: Optional[int] = None) -> tuple[Message, bool]:
    """Mark one message read by ``reader``; returns ``(message, changed)``."""
    message = get_message(message_id)
    if conversation_id is not None and str(message.conversation_id) != str(conversation_id):
        raise NotFoundError("Message not found in this conversation")

    conversation = message.conversation
    if not conversation.is_participant(reader.pk):
        raise AuthorizationError("You are not a participant of this conversation")
    if message.sender_id == reader.pk:
        raise ValidationError("You cannot mark your own message as read")
    if message.is_read:
        return message, False

    now = timezone.now()
    counter = conversation.unread_field_for(reader.pk)
    with transaction.atomic():
        flipped = Message.objects.filter(pk=message.pk, is_read=False).update(is_read=True, read_at=now)
        if flipped:
            Conversation.objects.filter(pk=conversation.pk).update(**{counter: Greatest(F(counter) - 1, 0)})

    message.refresh_from_db(fields=["is_read", "read_at"])
    if flipped:
        logger.info("Message %s marked read by %s", message.pk, reader.pk)
    return message, bool(flipped)


@retry_on_transient_db_error
def mark_conversation_read(conversation_id, reader) -> tuple[Conversation, int, object]:
    """Mark every unread message from the other participant read.

    The reader's counter is reset to zero rather than decremented per
    message, so sends racing with this call cannot leave it drifting.
    Returns ``(conversation, messages_marked, read_at)``.
    """
    now = timezone.now()
    with transaction.atomic():
        conversation = get_conversation(conversation_id, reader, allow_admin=False, lock=True)
        count = (
            Message.objects.filter(conversation=conversation, is_read=False)
            .exclude(sender=reader)
            .update(is_read=True, read_at=now)
        )
        counter = conversation.unread_field_for(reader.pk)
        Conversation.objects.filter(pk=conversation.pk).update(**{counter: 0})

    conversation.refresh_from_db()
    logger.info("Conversation %s: %s messages marked read by %s", conversation.pk, count, reader.pk)
    return conversation, count, now
