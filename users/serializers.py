"""
Serializers for the users app.

Expose the authenticated user together with the profile fields the chat
clients need to render a participant.
"""
from django.contrib.auth.models import User
from rest_framework import serializers

from .models import UserProfile, role_of


class UserProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserProfile
        fields = ["full_name", "role", "last_seen_at"]
        read_only_fields = ["role", "last_seen_at"]


class UserSerializer(serializers.ModelSerializer):
    profile = UserProfileSerializer(required=False)
    role = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "email", "role", "profile"]
        read_only_fields = ["id", "username", "role"]

    def get_role(self, obj):
        return role_of(obj)

    def update(self, instance, validated_data):
        profile_data = validated_data.pop("profile", None)
        instance = super().update(instance, validated_data)
        if profile_data:
            profile = instance.profile
            for attr, value in profile_data.items():
                setattr(profile, attr, value)
            profile.save(update_fields=list(profile_data))
        return instance
