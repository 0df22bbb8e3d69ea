from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("open", "Open"),
                            ("waiting", "Waiting"),
                            ("resolved", "Resolved"),
                            ("closed", "Closed"),
                        ],
                        db_index=True,
                        default="open",
                        max_length=16,
                    ),
                ),
                ("unread_for_user", models.PositiveIntegerField(default=0)),
                ("unread_for_support", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assigned_support",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assigned_support_conversations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="support_conversations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "message_type",
                    models.CharField(
                        choices=[("text", "Text"), ("image", "Image"), ("audio", "Audio"), ("video", "Video")],
                        default="text",
                        max_length=8,
                    ),
                ),
                ("content", models.TextField(blank=True, default="")),
                ("media_ref", models.CharField(blank=True, default="", max_length=255)),
                ("media", models.JSONField(blank=True, null=True)),
                ("client_message_id", models.CharField(blank=True, max_length=64, null=True)),
                ("is_read", models.BooleanField(default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "conversation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="support_chat.conversation",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="support_messages_sent",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["conversation", "-created_at"], name="support_msg_conv_created_idx"),
                    models.Index(fields=["conversation", "is_read"], name="support_msg_conv_read_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            (
                                models.Q(("message_type", "text"))
                                & ~models.Q(("content", ""))
                                & models.Q(("media_ref", ""))
                            )
                            | (
                                ~models.Q(("message_type", "text"))
                                & models.Q(("content", ""))
                                & ~models.Q(("media_ref", ""))
                            )
                        ),
                        name="support_message_payload_matches_type",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("client_message_id__isnull", False)),
                        fields=("sender", "client_message_id"),
                        name="uniq_support_message_client_id",
                    ),
                ],
            },
        ),
        migrations.AddField(
            model_name="conversation",
            name="last_message",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="support_chat.message",
            ),
        ),
        migrations.AddIndex(
            model_name="conversation",
            index=models.Index(fields=["user", "is_active", "-updated_at"], name="support_conv_user_idx"),
        ),
        migrations.AddIndex(
            model_name="conversation",
            index=models.Index(
                fields=["assigned_support", "is_active", "-updated_at"], name="support_conv_agent_idx"
            ),
        ),
        migrations.AddConstraint(
            model_name="conversation",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_active", True)),
                fields=("user", "assigned_support"),
                name="uniq_active_support_conversation",
            ),
        ),
        migrations.AddConstraint(
            model_name="conversation",
            constraint=models.CheckConstraint(
                condition=models.Q(("user", models.F("assigned_support")), _negated=True),
                name="support_conversation_distinct_participants",
            ),
        ),
    ]
