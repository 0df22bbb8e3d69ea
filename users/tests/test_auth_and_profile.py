"""
Tests for authentication and profile management in the users app.

This module covers login via JWT, automatic profile creation, role
resolution, and the ``/api/auth/me/`` endpoint for retrieving and
updating the authenticated user's information.
"""
import pytest
from django.contrib.auth.models import User

from users.models import Role, UserProfile, display_name, role_of


@pytest.mark.django_db
def test_profile_created_for_new_user():
    user = User.objects.create_user(username="bob", password="pass12345")
    assert UserProfile.objects.filter(user=user).count() == 1
    assert user.profile.role == Role.USER


@pytest.mark.django_db
def test_role_of_superuser_is_admin():
    boss = User.objects.create_superuser("boss", "boss@example.com", "pass12345")
    assert boss.profile.role == Role.USER
    assert role_of(boss) == Role.ADMIN


@pytest.mark.django_db
def test_role_of_support_profile(make_user):
    agent = make_user("agent-x", Role.SUPPORT)
    assert role_of(agent) == Role.SUPPORT


def test_role_of_anonymous_is_empty():
    from django.contrib.auth.models import AnonymousUser

    assert role_of(AnonymousUser()) == ""
    assert role_of(None) == ""


@pytest.mark.django_db
def test_display_name_prefers_profile_full_name(make_user):
    user = make_user("carol", full_name="Carol C")
    assert display_name(user) == "Carol C"
    user.profile.full_name = ""
    assert display_name(user) == "carol"


@pytest.mark.django_db
def test_login_obtains_jwt(client, user):
    resp = client.post(
        "/api/auth/token/",
        {"username": "u1", "password": "pass12345"},
        content_type="application/json",
    )
    assert resp.status_code == 200
    assert "access" in resp.json()
    assert "refresh" in resp.json()


@pytest.mark.django_db
def test_me_endpoint(auth_client):
    """Verify that the /api/auth/me/ endpoint returns and updates user info."""
    response = auth_client.get("/api/auth/me/")
    assert response.status_code == 200
    assert response.json()["username"] == "u1"
    assert response.json()["role"] == "user"

    update_resp = auth_client.patch(
        "/api/auth/me/",
        {"profile": {"full_name": "User One"}},
        content_type="application/json",
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["profile"]["full_name"] == "User One"


@pytest.mark.django_db
def test_me_requires_authentication(client):
    response = client.get("/api/auth/me/")
    assert response.status_code == 401
    assert "message" in response.json()
