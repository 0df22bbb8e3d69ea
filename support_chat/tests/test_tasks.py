"""
Tests for the push task and the external adapters behind it.
"""
from unittest import mock

import pytest
import requests
from django.db import OperationalError
from rest_framework.exceptions import NotFound

from common.exceptions import envelope_exception_handler
from support_chat import services
from support_chat.exceptions import ServiceUnavailable
from support_chat.media import HttpMediaStore
from support_chat.push import NullPushNotifier, WebhookPushNotifier
from support_chat.retry import retry_on_transient_db_error
from support_chat.tasks import push_body_for, send_message_push


# ---------- push task ----------
@pytest.mark.django_db
def test_send_message_push(conversation, end_user, send_text):
    message = send_text(conversation, end_user, "Any update?")

    send_message_push.delay(message.pk, conversation.assigned_support_id, "Alice A")

    assert list(NullPushNotifier.sent) == [
        {
            "user_id": conversation.assigned_support_id,
            "title": "New message from Alice A",
            "body": "Any update?",
            "data": {
                "type": "new_message",
                "conversationId": conversation.pk,
                "messageId": message.pk,
                "senderId": end_user.pk,
            },
        }
    ]


@pytest.mark.django_db
def test_send_message_push_skips_deleted_message(agent):
    send_message_push.delay(999999, agent.pk, "Nobody")
    assert list(NullPushNotifier.sent) == []


@pytest.mark.django_db
def test_push_body_for_media(conversation, agent, media_store):
    media_store.add("img-1", "https://cdn.example.com/i.png", "image/png", 10)
    message, _ = services.append_message(conversation.pk, agent, "image", media_ref="img-1")
    assert push_body_for(message) == "Sent an image"


@mock.patch("support_chat.push.requests.post")
def test_webhook_notifier_posts_string_data(mock_post):
    mock_post.return_value.raise_for_status.return_value = None
    notifier = WebhookPushNotifier(url="https://push.example.com/send", timeout=3)

    notifier.send(7, "Hello", "body", {"messageId": 12, "type": "new_message"})

    mock_post.assert_called_once_with(
        "https://push.example.com/send",
        json={
            "user_id": 7,
            "notification": {"title": "Hello", "body": "body"},
            "data": {"messageId": "12", "type": "new_message"},
        },
        timeout=3,
    )


@mock.patch("support_chat.push.requests.post")
def test_webhook_notifier_without_url_is_noop(mock_post):
    WebhookPushNotifier(url="").send(7, "Hello", "body", {})
    mock_post.assert_not_called()


@mock.patch("support_chat.push.requests.post")
def test_webhook_notifier_raises_http_errors(mock_post):
    mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("502")
    with pytest.raises(requests.HTTPError):
        WebhookPushNotifier(url="https://push.example.com/send").send(7, "t", "b", {})


# ---------- media store ----------
def _response(status_code, payload=None):
    resp = mock.Mock(status_code=status_code)
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(str(status_code))
    return resp


@mock.patch("support_chat.media.requests.get")
def test_http_media_store_resolves(mock_get):
    mock_get.return_value = _response(
        200, {"data": {"url": "https://cdn.example.com/a.mp3", "mimeType": "audio/mpeg", "size": 99}}
    )
    store = HttpMediaStore(base_url="https://media.example.com/files/", timeout=2)

    assert store.resolve("a-1") == {"url": "https://cdn.example.com/a.mp3", "format": "audio/mpeg", "size": 99}
    mock_get.assert_called_once_with("https://media.example.com/files/a-1", timeout=2)


@mock.patch("support_chat.media.requests.get")
def test_http_media_store_missing(mock_get):
    mock_get.return_value = _response(404)
    assert HttpMediaStore(base_url="https://media.example.com").resolve("gone") is None


@pytest.mark.parametrize(
    "side_effect",
    [requests.ConnectionError("down"), None],
)
@mock.patch("support_chat.media.requests.get")
def test_http_media_store_unavailable(mock_get, side_effect):
    if side_effect is None:
        mock_get.return_value = _response(500)
    else:
        mock_get.side_effect = side_effect
    with pytest.raises(ServiceUnavailable):
        HttpMediaStore(base_url="https://media.example.com").resolve("a-1")


# ---------- retry ----------
def test_retry_gives_up_after_configured_attempts(settings):
    settings.SUPPORT_CHAT = {**settings.SUPPORT_CHAT, "DB_RETRY_ATTEMPTS": 2, "DB_RETRY_MAX_WAIT": 0}
    calls = []

    @retry_on_transient_db_error
    def always_fails():
        calls.append(1)
        raise OperationalError("deadlock detected")

    with pytest.raises(OperationalError):
        always_fails()
    assert len(calls) == 2


def test_retry_does_not_touch_other_errors():
    calls = []

    @retry_on_transient_db_error
    def broken():
        calls.append(1)
        raise KeyError("x")

    with pytest.raises(KeyError):
        broken()
    assert len(calls) == 1


# ---------- error envelope ----------
def test_envelope_wraps_api_exceptions():
    response = envelope_exception_handler(NotFound("Conversation not found"), {})
    assert response.status_code == 404
    assert response.data == {"message": "Conversation not found"}


def test_envelope_reports_unexpected_errors_generically():
    response = envelope_exception_handler(RuntimeError("boom"), {"view": None})
    assert response.status_code == 500
    assert response.data == {"message": "Internal server error"}


@mock.patch("support_chat.media.requests.get")
def test_http_media_store_escapes_reference(mock_get):
    mock_get.return_value = _response(404)
    HttpMediaStore(base_url="https://media.example.com", timeout=2).resolve("../admin/x")
    mock_get.assert_called_once_with("https://media.example.com/..%2Fadmin%2Fx", timeout=2)


def test_null_notifier_keeps_bounded_history():
    notifier = NullPushNotifier()
    for i in range(NullPushNotifier.sent.maxlen + 5):
        notifier.send(i, "t", "b", {})
    assert len(NullPushNotifier.sent) == NullPushNotifier.sent.maxlen
    assert NullPushNotifier.sent[-1]["user_id"] == NullPushNotifier.sent.maxlen + 4
