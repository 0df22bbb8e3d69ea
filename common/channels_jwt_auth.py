"""
Custom JWT authentication middleware for Django Channels.

This middleware extracts a JWT token either from the WebSocket's
`Authorization: Bearer <token>` header or from a `token` query parameter.
It validates the token using SimpleJWT and populates `scope['user']` with
the corresponding Django user instance.  Anonymous users will see
`scope['user']` set to an `AnonymousUser` if authentication fails, and
`scope['auth_error']` carries the reason so consumers can log it.
"""

import logging
import urllib.parse
from typing import Callable, Optional

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)

User = get_user_model()


@database_sync_to_async
def get_user_from_token(token: str):
    """Validate an access token and return its active user, or None."""
    access = AccessToken(token)
    user_id = access.get(api_settings.USER_ID_CLAIM)
    if user_id is None:
        raise InvalidToken("Token contained no recognizable user identification")
    try:
        user = User.objects.get(**{api_settings.USER_ID_FIELD: user_id})
    except User.DoesNotExist:
        return None
    return user if user.is_active else None


def extract_token(scope) -> Optional[str]:
    headers = dict(scope.get("headers", []))

    # Check Authorization header for Bearer token
    auth_header = headers.get(b"authorization", b"").decode()
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None

    # Fallback: check query string for token parameter
    qs = scope.get("query_string", b"").decode()
    params = urllib.parse.parse_qs(qs)
    return params.get("token", [None])[0]


class _JWTMiddleware(BaseMiddleware):
    """Low-level middleware to handle JWT tokens in a WebSocket scope."""

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        scope["user"] = AnonymousUser()
        scope["auth_error"] = None

        token = extract_token(scope)
        if not token:
            scope["auth_error"] = "Token required"
        else:
            try:
                user = await get_user_from_token(token)
            except (InvalidToken, TokenError) as exc:
                scope["auth_error"] = f"Invalid token: {exc}"
            else:
                if user is None:
                    scope["auth_error"] = "Unknown or inactive user"
                else:
                    scope["user"] = user

        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner: Callable):
    """Entry point for the middleware stack used by Channels routing."""
    return _JWTMiddleware(inner)
