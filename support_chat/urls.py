"""
URL configuration for the support chat.

These routes are included under the ``/api/support-chat/`` prefix at the
project level.
"""
from django.urls import path

from .views import (
    ConversationDetailView,
    ConversationListCreateView,
    ConversationReadView,
    ConversationStatusView,
    MessageCreateView,
    MessageReadView,
    MessageView,
    PresenceView,
    ReassignView,
    StatsView,
    SupportConversationListView,
)

app_name = "support_chat"

urlpatterns = [
    path("conversations/", ConversationListCreateView.as_view(), name="conversation-list"),
    path("conversations/<int:pk>/", ConversationDetailView.as_view(), name="conversation-detail"),
    path("conversations/<int:pk>/status/", ConversationStatusView.as_view(), name="conversation-status"),
    path("conversations/<int:pk>/read/", ConversationReadView.as_view(), name="conversation-read"),

    path("messages/", MessageCreateView.as_view(), name="message-create"),
    # GET takes a conversation id, DELETE a message id
    path("messages/<int:pk>/", MessageView.as_view(), name="message-detail"),
    path("messages/<int:pk>/read/", MessageReadView.as_view(), name="message-read"),

    path("support/conversations/", SupportConversationListView.as_view(), name="support-conversations"),
    path("support/reassign/", ReassignView.as_view(), name="support-reassign"),
    path("support/stats/", StatsView.as_view(), name="support-stats"),
    path("presence/", PresenceView.as_view(), name="presence"),
]
