"""
Error taxonomy for the support chat.

The errors are DRF exceptions so a service function can raise them once
and both transports render them: the REST views through the project
exception handler, the WebSocket consumer as an ``error`` event.
"""
from rest_framework import exceptions, status


class AuthenticationError(exceptions.AuthenticationFailed):
    default_detail = "Authentication required"
    default_code = "authentication_error"


class AuthorizationError(exceptions.PermissionDenied):
    default_detail = "You are not allowed to perform this action"
    default_code = "authorization_error"


class ValidationError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"
    default_code = "validation_error"


class NotFoundError(exceptions.NotFound):
    default_detail = "Not found"
    default_code = "not_found"


class ServiceUnavailable(exceptions.APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "No support agent is available"
    default_code = "service_unavailable"


CHAT_ERRORS = (
    AuthenticationError,
    AuthorizationError,
    ValidationError,
    NotFoundError,
    ServiceUnavailable,
)
