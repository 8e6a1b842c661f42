"""Error taxonomy and the API response envelope.

Every response body carries ``success``, ``message``, ``data`` and ``error``.
Error codes are part of the public contract and must not change between
releases.
"""

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class HotelError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "ERROR"

    def __init__(self, message, code=None, details=None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details


class ValidationFailed(HotelError):
    default_code = "VALIDATION_ERROR"


class Unauthorized(HotelError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"


class Forbidden(HotelError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class NotFound(HotelError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class Conflict(HotelError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class GatewayFailure(HotelError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "GATEWAY_ERROR"


def envelope(data=None, message="", status_code=status.HTTP_200_OK, **extra):
    body = {"success": True, "message": message, "data": data, "error": None}
    body.update(extra)
    return Response(body, status=status_code)


def error_body(message, code, details=None):
    error = {"code": code}
    if details:
        error["details"] = details
    return {"success": False, "message": message, "data": None, "error": error}


_DRF_CODES = {
    drf_exceptions.ValidationError: "VALIDATION_ERROR",
    drf_exceptions.ParseError: "VALIDATION_ERROR",
    drf_exceptions.NotAuthenticated: "UNAUTHORIZED",
    drf_exceptions.AuthenticationFailed: "UNAUTHORIZED",
    drf_exceptions.PermissionDenied: "FORBIDDEN",
    drf_exceptions.NotFound: "NOT_FOUND",
    drf_exceptions.MethodNotAllowed: "METHOD_NOT_ALLOWED",
    drf_exceptions.Throttled: "RATE_LIMITED",
}


def api_exception_handler(exc, context):
    """DRF ``EXCEPTION_HANDLER`` producing the structured envelope."""
    # rest_framework.views pulls in the authentication classes, which import this module
    from rest_framework.views import exception_handler as drf_exception_handler

    if isinstance(exc, HotelError):
        return Response(error_body(exc.message, exc.code, exc.details), status=exc.status_code)

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = drf_exceptions.PermissionDenied()

    response = drf_exception_handler(exc, context)
    if response is not None:
        code = next((c for cls, c in _DRF_CODES.items() if isinstance(exc, cls)), "ERROR")
        if isinstance(exc, drf_exceptions.ValidationError):
            message = "Validation failed"
            details = response.data
        else:
            message = str(exc.detail)
            details = None
        response.data = error_body(message, code, details)
        return response

    view = context.get("view")
    logger.exception("Unhandled error in %s", type(view).__name__ if view else "request")
    return Response(
        error_body("Internal server error", "INTERNAL_ERROR"),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
