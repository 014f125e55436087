import logging
import traceback

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.db import IntegrityError
from django.http import Http404
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    MethodNotAllowed,
    NotAuthenticated,
    ValidationError,
)
from rest_framework_simplejwt.exceptions import TokenError

from .exceptions import DuplicateEntry
from .response import standardized_response

logger = logging.getLogger(__name__)


class StandardizedErrorMixin:
    """Translate every exception raised by a view into the standard envelope."""

    def _extract_error_message(self, detail):
        """
        Keep structured error payloads (dict/list) for serializer errors and
        normalize simple details to strings.
        """
        if isinstance(detail, (dict, list)):
            return detail
        return str(detail)

    def handle_exception(self, exc):
        request = getattr(self, "request", None)
        method = getattr(request, "method", "UNKNOWN")
        path = getattr(request, "path", "UNKNOWN")
        user = getattr(request, "user", None)
        user_id = getattr(user, "uuid", None) or getattr(user, "id", None) or "anonymous"

        if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
            return Response(
                standardized_response(success=False, error=str(exc.detail), error_code=exc.get_codes()),
                status=status.HTTP_401_UNAUTHORIZED
            )

        if isinstance(exc, TokenError):
            return Response(
                standardized_response(success=False, error='Invalid or expired token', error_code='invalid_token'),
                status=status.HTTP_401_UNAUTHORIZED
            )

        if isinstance(exc, MethodNotAllowed):
            return Response(
                standardized_response(success=False, error=str(exc.detail)),
                status=status.HTTP_405_METHOD_NOT_ALLOWED
            )

        if isinstance(exc, ValidationError):
            logger.warning("Validation error on %s %s (user=%s): %s", method, path, user_id, exc.detail)
            return Response(
                standardized_response(
                    success=False,
                    error=self._extract_error_message(exc.detail),
                    error_code='validation_error',
                ),
                status=status.HTTP_400_BAD_REQUEST
            )

        if isinstance(exc, Http404):
            return Response(
                standardized_response(success=False, error=str(exc) or 'Not found.', error_code='not_found'),
                status=status.HTTP_404_NOT_FOUND
            )

        if isinstance(exc, DjangoPermissionDenied):
            return Response(
                standardized_response(success=False, error=str(exc) or 'Permission denied.', error_code='permission_denied'),
                status=status.HTTP_403_FORBIDDEN
            )

        if isinstance(exc, IntegrityError):
            logger.warning("Integrity error on %s %s (user=%s): %s", method, path, user_id, exc)
            exc = DuplicateEntry()

        if isinstance(exc, APIException):
            error_code = exc.get_codes()
            if not isinstance(error_code, str):
                error_code = None

            logger.warning(
                "API exception on %s %s (user=%s, status=%s, code=%s): %s",
                method,
                path,
                user_id,
                exc.status_code,
                error_code,
                exc.detail,
            )
            response = Response(
                standardized_response(
                    success=False,
                    error=self._extract_error_message(exc.detail),
                    error_code=error_code,
                ),
                status=exc.status_code
            )
            if getattr(exc, 'wait', None):
                response['Retry-After'] = str(int(exc.wait))
            return response

        logger.error("Unexpected error on %s %s (user=%s): %s", method, path, user_id, str(exc))
        logger.error(traceback.format_exc())

        return Response(
            standardized_response(success=False, error="An unexpected error occurred", error_code='server_error'),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


class BaseAPIView(StandardizedErrorMixin, APIView):
    """Base class for all API views with common error handling and response formatting"""
