"""
Models for the users app.

A `UserProfile` model extends the built-in `auth.User` with the fields the
support chat needs: a display name, a role and the last time the user was
seen on a live connection.  A `OneToOneField` links each profile to its
user.  The `UserProfile` is created automatically via signals when a new
user instance is saved.
"""
from django.contrib.auth.models import User
from django.db import models


class Role(models.TextChoices):
    USER = "user", "User"
    SUPPORT = "support", "Support"
    ADMIN = "admin", "Admin"


STAFF_ROLES = (Role.SUPPORT, Role.ADMIN)


class UserProfile(models.Model):
    """Extension of Django's built-in User model."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    full_name = models.CharField(max_length=255, blank=True)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.USER, db_index=True)
    last_seen_at = models.DateTimeField(null=True, blank=True)

    def __str__(self) -> str:
        return f"Profile<{self.user.username}>"

    class Meta:
        indexes = [
            models.Index(fields=["last_seen_at"], name="users_profile_last_seen_idx"),
        ]


def role_of(user) -> str:
    """Resolve the chat role of ``user``; superusers always act as admins."""
    if user is None or not getattr(user, "is_authenticated", False):
        return ""
    if user.is_superuser:
        return Role.ADMIN
    profile = getattr(user, "profile", None)
    return profile.role if profile else Role.USER


def display_name(user) -> str:
    profile = getattr(user, "profile", None)
    full = (getattr(profile, "full_name", "") or user.get_full_name() or "").strip()
    return full or user.username
