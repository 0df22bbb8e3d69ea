"""
Project-wide DRF exception handler.

Every error leaves the REST API in the same envelope as successful
responses, ``{"message": ...}``, with the HTTP status carrying the kind
of failure.  Unexpected exceptions are logged with their traceback and
reported as a generic 500.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _flatten(detail):
    if isinstance(detail, dict):
        parts = []
        for field, value in detail.items():
            text = _flatten(value)
            parts.append(text if field == "non_field_errors" else f"{field}: {text}")
        return "; ".join(parts)
    if isinstance(detail, (list, tuple)):
        return "; ".join(_flatten(item) for item in detail)
    return str(detail)


def envelope_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception(
            "Unhandled error in %s", view.__class__.__name__ if view else "view", exc_info=exc
        )
        return Response(
            {"message": "Internal server error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    detail = getattr(exc, "detail", response.data)
    payload = {"message": _flatten(detail)}
    if isinstance(detail, dict):
        payload["errors"] = response.data
    response.data = payload
    return response
