"""
Push Notification adapters.

Delivery transport (FCM, APNs, ...) is owned by another service; this
module only hands a notification over.  The adapter is chosen by
``SUPPORT_CHAT["PUSH_NOTIFIER"]`` and is called from the Celery task in
``tasks.py``, which owns retries.
"""
from __future__ import annotations

import logging
from collections import deque

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PushNotifier:
    def send(self, user_id: int, title: str, body: str, data: dict) -> None:
        raise NotImplementedError


class WebhookPushNotifier(PushNotifier):
    """POSTs the notification as JSON to ``PUSH_WEBHOOK_URL``."""

    def __init__(self, url: str | None = None, timeout: float | None = None):
        config = settings.SUPPORT_CHAT
        self.url = url if url is not None else config.get("PUSH_WEBHOOK_URL", "")
        self.timeout = timeout or config.get("PUSH_TIMEOUT", 10)

    def send(self, user_id: int, title: str, body: str, data: dict) -> None:
        if not self.url:
            logger.info("Push webhook not configured; dropping notification for user %s", user_id)
            return
        payload = {
            "user_id": user_id,
            "notification": {"title": title, "body": body},
            # push transports only carry string values
            "data": {k: str(v) for k, v in data.items()},
        }
        resp = requests.post(self.url, json=payload, timeout=self.timeout)
        resp.raise_for_status()


class NullPushNotifier(PushNotifier):
    """Logs notifications instead of sending them; keeps the most recent ones for tests."""

    sent: deque = deque(maxlen=100)

    def send(self, user_id: int, title: str, body: str, data: dict) -> None:
        logger.info("Push notification for user %s: %s", user_id, title)
        self.sent.append({"user_id": user_id, "title": title, "body": body, "data": data})


def get_push_notifier() -> PushNotifier:
    return import_string(settings.SUPPORT_CHAT["PUSH_NOTIFIER"])()
