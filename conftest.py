"""
Common test fixtures.

Provides users for each chat role, authenticated API clients, a fresh
presence registry per test and the in-memory media and push adapters.
"""
import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient

from support_chat.media import InMemoryMediaStore
from support_chat.presence import registry
from support_chat.push import NullPushNotifier
from users.models import Role


@pytest.fixture(autouse=True)
def _clean_in_process_state():
    registry.reset()
    InMemoryMediaStore.clear()
    NullPushNotifier.sent.clear()
    yield
    registry.reset()


@pytest.fixture
def make_user(db):
    """Factory creating a user whose profile carries the given role."""

    def _make(username, role=Role.USER, full_name="", **kwargs):
        user = User.objects.create_user(username=username, password="pass12345", **kwargs)
        profile = user.profile
        profile.role = role
        profile.full_name = full_name
        profile.save()
        return user

    return _make


@pytest.fixture
def user(make_user):
    """Create a test user."""
    return make_user("u1", email="u1@example.com")


@pytest.fixture
def end_user(make_user):
    return make_user("alice", full_name="Alice A")


@pytest.fixture
def agent(make_user):
    return make_user("agent-1", Role.SUPPORT, full_name="Agent One")


@pytest.fixture
def chat_admin(make_user):
    return make_user("chat-admin", Role.ADMIN)


@pytest.fixture
def outsider(make_user):
    return make_user("mallory")


@pytest.fixture
def api_client_for():
    """Factory returning an APIClient authenticated as the given user."""

    def _client(u):
        client = APIClient()
        client.force_authenticate(user=u)
        return client

    return _client


@pytest.fixture
def auth_client(client, db, user):
    """Authenticate the Django test client using JWT tokens."""
    resp = client.post(
        "/api/auth/token/",
        {"username": "u1", "password": "pass12345"},
        content_type="application/json",
    )
    assert resp.status_code == 200
    token = resp.json()["access"]
    client.defaults["HTTP_AUTHORIZATION"] = f"Bearer {token}"
    return client


@pytest.fixture
def media_store():
    return InMemoryMediaStore
