# support_chat/admin.py
from django.contrib import admin

from .models import Conversation, Message


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ("sender", "message_type", "content", "media_ref", "is_read", "created_at")
    readonly_fields = fields
    ordering = ("-created_at",)
    show_change_link = True


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = (
        "id", "user", "assigned_support", "status", "unread_for_user", "unread_for_support",
        "is_active", "updated_at", "created_at",
    )
    list_filter = ("status", "is_active", "updated_at")
    search_fields = ("user__username", "assigned_support__username", "user__profile__full_name")
    raw_id_fields = ("user", "assigned_support", "last_message")
    readonly_fields = ("unread_for_user", "unread_for_support", "created_at", "updated_at")
    ordering = ("-updated_at",)
    inlines = [MessageInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "conversation", "sender", "message_type", "is_read", "created_at")
    list_filter = ("message_type", "is_read", "created_at")
    search_fields = ("sender__username", "content", "client_message_id")
    raw_id_fields = ("conversation", "sender")
    ordering = ("-created_at",)
