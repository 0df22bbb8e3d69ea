# support_chat/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Conversation(models.Model):
    """A two-party thread between a requesting user and the agent handling it."""

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        WAITING = "waiting", "Waiting"
        RESOLVED = "resolved", "Resolved"
        CLOSED = "closed", "Closed"

    ACTIVE_STATUSES = (Status.OPEN, Status.WAITING)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name="support_conversations",
    )
    assigned_support = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT,
        related_name="assigned_support_conversations",
    )
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.OPEN, db_index=True)

    # weak pointer to the newest message; repaired on hard delete
    last_message = models.ForeignKey(
        "support_chat.Message", on_delete=models.SET_NULL,
        related_name="+", null=True, blank=True,
    )

    # fixed two-slot unread counters, one per participant role
    unread_for_user = models.PositiveIntegerField(default=0)
    unread_for_support = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # ---------- participants ----------
    @property
    def participant_ids(self):
        return self.user_id, self.assigned_support_id

    def is_participant(self, user_id) -> bool:
        return user_id in self.participant_ids

    def other_participant_id(self, user_id):
        if user_id == self.user_id:
            return self.assigned_support_id
        if user_id == self.assigned_support_id:
            return self.user_id
        raise ValueError(f"User {user_id} is not a participant of conversation {self.pk}")

    def unread_field_for(self, user_id) -> str:
        """Name of the counter column holding ``user_id``'s unread count."""
        if user_id == self.user_id:
            return "unread_for_user"
        if user_id == self.assigned_support_id:
            return "unread_for_support"
        raise ValueError(f"User {user_id} is not a participant of conversation {self.pk}")

    @property
    def unread_count(self) -> dict:
        return {
            str(self.user_id): self.unread_for_user,
            str(self.assigned_support_id): self.unread_for_support,
        }

    def __str__(self):
        return f"Conversation({self.user_id} <-> {self.assigned_support_id}, {self.status})"

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["user", "is_active", "-updated_at"], name="support_conv_user_idx"),
            models.Index(fields=["assigned_support", "is_active", "-updated_at"], name="support_conv_agent_idx"),
        ]
        constraints = [
            # One active conversation per (user, agent) pair
            models.UniqueConstraint(
                fields=["user", "assigned_support"],
                name="uniq_active_support_conversation",
                condition=Q(is_active=True),
            ),
            models.CheckConstraint(
                name="support_conversation_distinct_participants",
                condition=~Q(user=models.F("assigned_support")),
            ),
        ]


class Message(models.Model):
    """A single message; ``content`` is set for text, ``media_ref`` for everything else."""

    class Type(models.TextChoices):
        TEXT = "text", "Text"
        IMAGE = "image", "Image"
        AUDIO = "audio", "Audio"
        VIDEO = "video", "Video"

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="support_messages_sent"
    )
    message_type = models.CharField(max_length=8, choices=Type.choices, default=Type.TEXT)
    content = models.TextField(blank=True, default="")
    media_ref = models.CharField(max_length=255, blank=True, default="")
    # {url, format, size} as resolved by the media store at send time
    media = models.JSONField(null=True, blank=True)

    # client-side tempId; a resend with the same id returns the stored message
    client_message_id = models.CharField(max_length=64, null=True, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Message({self.pk}, {self.message_type}, conv={self.conversation_id})"

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["conversation", "-created_at"], name="support_msg_conv_created_idx"),
            models.Index(fields=["conversation", "is_read"], name="support_msg_conv_read_idx"),
        ]
        constraints = [
            # exactly one of content/media_ref, chosen by message_type
            models.CheckConstraint(
                name="support_message_payload_matches_type",
                condition=(
                    (Q(message_type="text") & ~Q(content="") & Q(media_ref=""))
                    | (~Q(message_type="text") & Q(content="") & ~Q(media_ref=""))
                ),
            ),
            models.UniqueConstraint(
                fields=["sender", "client_message_id"],
                name="uniq_support_message_client_id",
                condition=Q(client_message_id__isnull=False),
            ),
        ]
