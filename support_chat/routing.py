"""
WebSocket routing for the support chat.

A single endpoint carries every conversation of a connection; rooms are
joined with ``conversation:join`` events rather than per-URL.  The JWT
middleware authenticates the handshake and the consumer rejects
anonymous connections.
"""
from django.urls import re_path

from .consumers import SupportChatConsumer


websocket_urlpatterns = [
    re_path(r"^ws/support-chat/$", SupportChatConsumer.as_asgi()),
]
