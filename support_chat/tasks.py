"""
Celery tasks for the support chat.

Offline recipients get a push notification for new messages.  The task
is queued after the sending transaction commits, so a rolled back send
never notifies anyone.  Transport errors are retried with backoff.
"""
from __future__ import annotations

import logging

import requests
from celery import shared_task

from .models import Message
from .push import get_push_notifier

logger = logging.getLogger(__name__)


def push_body_for(message: Message) -> str:
    if message.message_type == Message.Type.TEXT:
        return message.content
    article = "an" if message.message_type[0] in "aeiou" else "a"
    return f"Sent {article} {message.message_type}"


@shared_task(bind=True, autoretry_for=(requests.RequestException,), retry_backoff=True, max_retries=5)
def send_message_push(self, message_id: int, recipient_id: int, sender_name: str) -> None:
    """Notify ``recipient_id`` of a message they missed while offline.

    Args:
        message_id: Message primary key.
        recipient_id: User to notify.
        sender_name: Display name used in the notification title.
    """
    try:
        message = Message.objects.get(pk=message_id)
    except Message.DoesNotExist:
        # deleted before the worker got to it
        logger.info("Skipping push for deleted message %s", message_id)
        return

    get_push_notifier().send(
        recipient_id,
        title=f"New message from {sender_name}",
        body=push_body_for(message),
        data={
            "type": "new_message",
            "conversationId": message.conversation_id,
            "messageId": message.pk,
            "senderId": message.sender_id,
        },
    )
    logger.info("Queued push for message %s to user %s", message_id, recipient_id)
