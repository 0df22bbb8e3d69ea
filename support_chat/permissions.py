"""
Custom permission classes for the support chat.

Participant checks live in the service layer because the WebSocket
consumer needs them too; these classes only gate the staff-only views.
"""
from rest_framework.permissions import BasePermission

from users.models import STAFF_ROLES, Role, role_of


class IsSupportStaff(BasePermission):
    """Allow support agents and admins."""

    message = "Only support staff can access this resource"

    def has_permission(self, request, view):
        return role_of(request.user) in STAFF_ROLES


class IsChatAdmin(BasePermission):
    message = "Only admins can access this resource"

    def has_permission(self, request, view):
        return role_of(request.user) == Role.ADMIN
