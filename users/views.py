"""
Views for the users app.

Token issuance is handled by SimpleJWT's stock views (see ``urls.py``);
this module only exposes the authenticated user's own record.
"""
from rest_framework import generics, permissions

from .serializers import UserSerializer


class MeView(generics.RetrieveUpdateAPIView):
    """Retrieve or update the currently authenticated user."""

    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]
    http_method_names = ["get", "patch", "put"]

    def get_object(self):
        return self.request.user
