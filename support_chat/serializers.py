from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from users.models import display_name, role_of

from .models import Conversation, Message
from .presence import registry

User = get_user_model()


class ParticipantSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()
    role = serializers.SerializerMethodField()
    is_online = serializers.SerializerMethodField()
    last_seen_at = serializers.DateTimeField(source="profile.last_seen_at", read_only=True, default=None)

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "role", "is_online", "last_seen_at"]
        read_only_fields = fields

    def get_full_name(self, obj):
        return display_name(obj)

    def get_role(self, obj):
        return role_of(obj)

    def get_is_online(self, obj):
        return registry.is_online(obj.pk)


class MessageSerializer(serializers.ModelSerializer):
    sender = ParticipantSerializer(read_only=True)
    conversation_id = serializers.IntegerField(read_only=True)
    temp_id = serializers.CharField(source="client_message_id", read_only=True, default=None)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "message_type",
            "content",
            "media_ref",
            "media",
            "temp_id",
            "is_read",
            "read_at",
            "delivered_at",
            "created_at",
        ]
        read_only_fields = fields


class LastMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = ["id", "sender_id", "message_type", "content", "media_ref", "is_read", "created_at"]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    user = ParticipantSerializer(read_only=True)
    assigned_support = ParticipantSerializer(read_only=True)
    last_message = LastMessageSerializer(read_only=True)
    unread_count = serializers.SerializerMethodField()
    my_unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "user",
            "assigned_support",
            "status",
            "last_message",
            "unread_count",
            "my_unread_count",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_unread_count(self, obj):
        return obj.unread_count

    def get_my_unread_count(self, obj):
        req = self.context.get("request")
        me_id = getattr(getattr(req, "user", None), "id", None)
        if me_id is None or not obj.is_participant(me_id):
            return None
        return getattr(obj, obj.unread_field_for(me_id))


# ---------- request bodies ----------
class MessageCreateSerializer(serializers.Serializer):
    conversation_id = serializers.IntegerField()
    message_type = serializers.ChoiceField(choices=Message.Type.choices, default=Message.Type.TEXT)
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    media_id = serializers.CharField(required=False, allow_blank=True, max_length=255)
    temp_id = serializers.CharField(required=False, allow_blank=True, max_length=64)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Conversation.Status.choices)


class ReassignSerializer(serializers.Serializer):
    conversation_id = serializers.IntegerField()
    new_support_id = serializers.IntegerField()
