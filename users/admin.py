"""
Admin configuration for the users app.

This module unregisters the default `User` admin and re-registers it with
an inline profile form so that roles can be granted via the Django admin.
Fields displayed on the list include username, email, active status, and
join date.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User

from .models import UserProfile


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    fields = ("full_name", "role", "last_seen_at")
    readonly_fields = ("last_seen_at",)


class UserAdmin(BaseUserAdmin):
    inlines = [UserProfileInline]
    list_display = ("username", "email", "role", "is_active", "date_joined")
    list_select_related = ("profile",)

    @admin.display(description="Role", ordering="profile__role")
    def role(self, obj):
        profile = getattr(obj, "profile", None)
        return profile.role if profile else ""


admin.site.unregister(User)
admin.site.register(User, UserAdmin)
