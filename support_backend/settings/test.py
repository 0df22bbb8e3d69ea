"""
Test settings for the support chat backend.

Swaps every networked backend for an in-process one: SQLite, the
in-memory channel layer, a local-memory cache, eager Celery and the
in-memory media store.
"""
from .base import *  # noqa

DEBUG = False
ALLOWED_HOSTS = ["testserver", "localhost", "127.0.0.1"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test_db.sqlite3",  # noqa: F405
        # file-backed so database_sync_to_async threads share one database
        "TEST": {"NAME": BASE_DIR / "test_db.sqlite3"},  # noqa: F405
    }
}

CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}

CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

SUPPORT_CHAT = {
    **SUPPORT_CHAT,  # noqa: F405
    "ASSIGNMENT_POLICY": "single",
    "MEDIA_STORE": "support_chat.media.InMemoryMediaStore",
    "PUSH_NOTIFIER": "support_chat.push.NullPushNotifier",
    "DB_RETRY_MAX_WAIT": 0,
}

LOGGING["root"]["level"] = "WARNING"  # noqa: F405
