from django.apps import AppConfig


class SupportChatConfig(AppConfig):
    """Configuration for the support chat app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "support_chat"
    verbose_name = "Support chat"
