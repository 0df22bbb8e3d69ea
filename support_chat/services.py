# support_chat/services.py
"""
Conversation directory and message store.

All state changes of the support chat go through these functions; the
REST views and the WebSocket consumer only translate transport input
and broadcast the results.  Functions take the acting ``User`` and raise
the errors from ``exceptions.py``.

Unread counters are only ever changed with ``F()`` expressions while the
conversation row is locked, so two participants sending at the same time
cannot lose an increment.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q
from django.db.models.functions import Greatest
from django.utils import timezone

from common.pagination import paginate
from users.models import STAFF_ROLES, Role, display_name, role_of

from .assignment import get_assignment_policy
from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .media import get_media_store
from .models import Conversation, Message
from .payloads import MediaPayload, parse_payload
from .presence import registry
from .retry import retry_on_transient_db_error

logger = logging.getLogger(__name__)

User = get_user_model()

CONVERSATION_RELATED = (
    "user__profile",
    "assigned_support__profile",
    "last_message",
)


def _active_conversations():
    return Conversation.objects.filter(is_active=True).select_related(*CONVERSATION_RELATED)


def _validate_status(value: Optional[str], *, required: bool = True) -> Optional[str]:
    if not value:
        if required:
            raise ValidationError("Status is required")
        return None
    if value not in Conversation.Status.values:
        raise ValidationError(
            f"Invalid status '{value}'. Expected one of: {', '.join(Conversation.Status.values)}"
        )
    return value


def get_conversation(conversation_id, actor, *, allow_admin: bool = True, lock: bool = False) -> Conversation:
    """Fetch an active conversation the actor may access.

    Participants always may; admins may when ``allow_admin`` is set.
    ``lock`` takes a row lock and must be used inside a transaction.
    """
    qs = _active_conversations()
    if lock:
        qs = qs.select_for_update(of=("self",))
    try:
        conversation = qs.get(pk=conversation_id)
    except (Conversation.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Conversation not found")

    if conversation.is_participant(actor.pk):
        return conversation
    if allow_admin and role_of(actor) == Role.ADMIN:
        return conversation
    raise AuthorizationError("You are not a participant of this conversation")


# ---------- conversation directory ----------
@retry_on_transient_db_error
def create_or_get_conversation(actor) -> tuple[Conversation, bool]:
    """Return the actor's active support conversation, creating it if needed.

    The assignment policy runs first so a missing support team is always
    reported.  An existing active conversation is reused even when the
    policy would now pick a different agent.
    """
    agent = get_assignment_policy().select(actor)

    existing = (
        _active_conversations().filter(user=actor, assigned_support=agent).first()
        or _active_conversations().filter(user=actor).order_by("-updated_at").first()
    )
    if existing:
        logger.info("Existing conversation %s found for user %s", existing.pk, actor.pk)
        return existing, False

    try:
        with transaction.atomic():
            conversation = Conversation.objects.create(user=actor, assigned_support=agent)
    except IntegrityError:
        # concurrent create for the same pair won the race
        return _active_conversations().get(user=actor, assigned_support=agent), False

    logger.info("Created conversation %s between user %s and support %s", conversation.pk, actor.pk, agent.pk)
    return _active_conversations().get(pk=conversation.pk), True


def list_conversations(actor, page=1, page_size: int = 20, status: Optional[str] = None):
    """Conversations visible to the actor, most recently updated first.

    Users see their own, support agents the ones assigned to them and
    admins every active conversation.
    """
    status = _validate_status(status, required=False)
    role = role_of(actor)
    qs = _active_conversations()
    if role == Role.SUPPORT:
        qs = qs.filter(assigned_support=actor)
    elif role != Role.ADMIN:
        qs = qs.filter(user=actor)
    if status:
        qs = qs.filter(status=status)
    return paginate(qs.order_by("-updated_at", "-id"), page, page_size)


def list_all_conversations(actor, page=1, page_size: int = 20, status=None, assigned_to=None):
    """Staff view over every active conversation."""
    if role_of(actor) not in STAFF_ROLES:
        raise AuthorizationError("Only support staff can list all conversations")
    status = _validate_status(status, required=False)
    qs = _active_conversations()
    if status:
        qs = qs.filter(status=status)
    if assigned_to:
        try:
            qs = qs.filter(assigned_support_id=int(assigned_to))
        except (TypeError, ValueError):
            raise ValidationError("assigned_to must be a user id")
    return paginate(qs.order_by("-updated_at", "-id"), page, page_size)


@retry_on_transient_db_error
def update_status(conversation_id, new_status, actor) -> Conversation:
    new_status = _validate_status(new_status)
    role = role_of(actor)
    if role not in STAFF_ROLES:
        raise AuthorizationError("Only support staff can change conversation status")

    with transaction.atomic():
        conversation = get_conversation(conversation_id, actor, lock=True)
        if role == Role.SUPPORT and conversation.assigned_support_id != actor.pk:
            raise AuthorizationError("You can only update conversations assigned to you")
        old_status = conversation.status
        conversation.status = new_status
        conversation.save(update_fields=["status", "updated_at"])

    logger.info(
        "Conversation %s status changed: %s -> %s by %s", conversation.pk, old_status, new_status, actor.pk
    )
    return conversation


@retry_on_transient_db_error
def soft_delete_conversation(conversation_id, actor) -> Conversation:
    role = role_of(actor)
    if role == Role.SUPPORT:
        raise AuthorizationError("Support agents cannot delete conversations")

    conversation = get_conversation(conversation_id, actor)
    if role != Role.ADMIN and conversation.user_id != actor.pk:
        raise AuthorizationError("You can only delete your own conversations")

    conversation.is_active = False
    conversation.save(update_fields=["is_active", "updated_at"])
    logger.info("Conversation %s soft-deleted by user %s", conversation.pk, actor.pk)
    return conversation


@retry_on_transient_db_error
def reassign_conversation(conversation_id, new_support_id, actor) -> tuple[Conversation, int]:
    """Hand a conversation to another agent; returns it with the previous agent id."""
    if role_of(actor) != Role.ADMIN:
        raise AuthorizationError("Only admins can reassign conversations")
    try:
        new_support = User.objects.select_related("profile").get(pk=new_support_id, is_active=True)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Support user not found")
    if role_of(new_support) not in STAFF_ROLES:
        raise ValidationError("Conversations can only be assigned to support staff")

    with transaction.atomic():
        conversation = get_conversation(conversation_id, actor, lock=True)
        previous_id = conversation.assigned_support_id
        if new_support.pk == conversation.user_id:
            raise ValidationError("A user cannot be assigned to their own conversation")
        if new_support.pk == previous_id:
            return conversation, previous_id
        clash = Conversation.objects.filter(
            user_id=conversation.user_id, assigned_support=new_support, is_active=True
        ).exists()
        if clash:
            raise ValidationError("The user already has an active conversation with this agent")

        conversation.assigned_support = new_support
        conversation.unread_for_support = 0
        conversation.save(update_fields=["assigned_support", "unread_for_support", "updated_at"])

    logger.info(
        "Conversation %s reassigned from %s to %s by %s", conversation.pk, previous_id, new_support.pk, actor.pk
    )
    return conversation, previous_id


def conversation_stats(actor) -> dict:
    if role_of(actor) not in STAFF_ROLES:
        raise AuthorizationError("Only support staff can view statistics")

    active = Conversation.objects.filter(is_active=True)
    by_status = {value: 0 for value in Conversation.Status.values}
    for row in active.values("status").annotate(n=Count("id")).order_by():
        by_status[row["status"]] = row["n"]

    per_agent = [
        {
            "support_id": row["assigned_support_id"],
            "username": row["assigned_support__username"],
            "total": row["total"],
            "active": row["active"],
        }
        for row in active.values("assigned_support_id", "assigned_support__username")
        .annotate(
            total=Count("id"),
            active=Count("id", filter=Q(status__in=Conversation.ACTIVE_STATUSES)),
        )
        .order_by("assigned_support_id")
    ]

    return {
        "total_conversations": sum(by_status.values()),
        "active_conversations": by_status["open"] + by_status["waiting"],
        "by_status": by_status,
        "per_agent": per_agent,
        "total_messages": Message.objects.filter(conversation__is_active=True).count(),
        "generated_at": timezone.now(),
    }


# ---------- message store ----------
def _queue_push(message: Message, recipient_id: int, sender_name: str) -> None:
    from .tasks import send_message_push

    send_message_push.delay(message.pk, recipient_id, sender_name)


@retry_on_transient_db_error
def append_message(
    conversation_id,
    sender,
    message_type: Optional[str] = None,
    content=None,
    media_ref=None,
    client_message_id: Optional[str] = None,
) -> tuple[Message, bool]:
    """Persist a message and update the conversation in one transaction.

    Returns ``(message, created)``.  A repeated ``client_message_id``
    from the same sender returns the stored message with
    ``created=False`` and changes nothing.
    """
    conversation = get_conversation(conversation_id, sender, allow_admin=False)
    payload = parse_payload(message_type, content, media_ref)
    client_message_id = (str(client_message_id).strip() or None) if client_message_id else None
    if client_message_id and len(client_message_id) > 64:
        raise ValidationError("tempId is too long")

    if client_message_id:
        duplicate = _find_duplicate(sender, client_message_id, conversation.pk)
        if duplicate:
            return duplicate, False

    media = None
    if isinstance(payload, MediaPayload):
        media = get_media_store().resolve(payload.media_ref)
        if media is None:
            raise NotFoundError("Media not found. Please upload media first.")

    recipient_id = conversation.other_participant_id(sender.pk)
    try:
        with transaction.atomic():
            conversation = get_conversation(conversation.pk, sender, allow_admin=False, lock=True)
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                media=media,
                client_message_id=client_message_id,
                delivered_at=timezone.now(),
                **payload.as_fields(),
            )

            counter = conversation.unread_field_for(recipient_id)
            changes = {
                counter: F(counter) + 1,
                "last_message": message,
                "updated_at": timezone.now(),
            }
            if sender.pk == conversation.user_id and conversation.status in Conversation.ACTIVE_STATUSES:
                changes["status"] = Conversation.Status.WAITING
            Conversation.objects.filter(pk=conversation.pk).update(**changes)

            if not registry.is_online(recipient_id):
                sender_name = display_name(sender)
                transaction.on_commit(lambda: _queue_push(message, recipient_id, sender_name))
    except IntegrityError:
        if client_message_id:
            duplicate = _find_duplicate(sender, client_message_id, conversation.pk)
            if duplicate:
                return duplicate, False
        raise

    conversation.refresh_from_db()
    message.conversation = conversation
    logger.info(
        "Message %s (%s) sent by %s in conversation %s",
        message.pk, message.message_type, sender.pk, conversation.pk,
    )
    return message, True


def _find_duplicate(sender, client_message_id: str, conversation_id: int) -> Optional[Message]:
    duplicate = (
        Message.objects.select_related("conversation", "sender__profile")
        .filter(sender=sender, client_message_id=client_message_id)
        .first()
    )
    if duplicate and duplicate.conversation_id != conversation_id:
        raise ValidationError("tempId was already used in another conversation")
    if duplicate:
        logger.info("Duplicate send of tempId %s by %s; returning message %s", client_message_id, sender.pk, duplicate.pk)
    return duplicate


def list_messages(conversation_id, actor, page=1, page_size: int = 50):
    """A page of messages in display order (oldest first).

    Page 1 holds the newest messages; higher pages go back in history.
    """
    conversation = get_conversation(conversation_id, actor)
    qs = (
        Message.objects.filter(conversation=conversation)
        .select_related("sender__profile")
        .order_by("-created_at", "-id")
    )
    items, pagination = paginate(qs, page, page_size)
    items.reverse()
    return items, pagination


def get_message(message_id) -> Message:
    try:
        return Message.objects.select_related("conversation", "sender__profile").get(
            pk=message_id, conversation__is_active=True
        )
    except (Message.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Message not found")


@retry_on_transient_db_error
def delete_message(message_id, actor) -> tuple[Conversation, int]:
    """Hard-delete a message and repair the conversation's last message.

    Only the sender or an admin may delete.  An unread message no longer
    counts towards the recipient's unread counter.
    """
    message = get_message(message_id)
    if message.sender_id != actor.pk and role_of(actor) != Role.ADMIN:
        raise AuthorizationError("You can only delete your own messages")

    with transaction.atomic():
        conversation = Conversation.objects.select_for_update().get(pk=message.conversation_id)
        # re-read under lock so a receipt committed meanwhile is seen
        message = Message.objects.select_for_update().filter(pk=message.pk).first()
        if message is None:
            raise NotFoundError("Message not found")
        was_last = conversation.last_message_id == message.pk
        # a reassigned conversation may hold messages from a former agent
        was_unread = not message.is_read and conversation.is_participant(message.sender_id)
        message_pk = message.pk
        message.delete()

        changes = {}
        if was_last:
            changes["last_message"] = (
                conversation.messages.order_by("-created_at", "-id").first()
            )
        if was_unread:
            counter = conversation.unread_field_for(conversation.other_participant_id(message.sender_id))
            changes[counter] = Greatest(F(counter) - 1, 0)
        if changes:
            Conversation.objects.filter(pk=conversation.pk).update(**changes)
        conversation.refresh_from_db()

    logger.info("Message %s deleted by %s in conversation %s", message_pk, actor.pk, conversation.pk)
    return conversation, message_pk
