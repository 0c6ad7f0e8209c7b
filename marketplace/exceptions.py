"""
Error taxonomy for the ClassCart API.

Every failure reaches the client as ``{"error": <message>, "kind": <kind>}``
with a stable ``kind``. Validation failures also carry the offending
``field``.
"""

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(exceptions.APIException):
    """Base class for errors raised by the marketplace services."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'
    default_code = 'error'
    kind = 'Error'

    def __init__(self, detail=None, field=None):
        super().__init__(detail)
        self.field = field


class ValidationFailed(MarketplaceError):
    default_detail = 'Invalid input.'
    default_code = 'invalid'
    kind = 'ValidationError'


class PasswordMismatch(MarketplaceError):
    default_detail = 'Passwords do not match'
    default_code = 'password_mismatch'
    kind = 'PasswordMismatch'


class NoFieldsToUpdate(MarketplaceError):
    default_detail = 'No fields to update'
    default_code = 'no_fields'
    kind = 'NoFieldsToUpdate'


class DuplicateUsername(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Username already taken'
    default_code = 'duplicate_username'
    kind = 'DuplicateUsername'


class DuplicateEmail(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Email already registered'
    default_code = 'duplicate_email'
    kind = 'DuplicateEmail'


class DuplicateContact(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Mobile number already registered'
    default_code = 'duplicate_contact'
    kind = 'DuplicateContact'


class InvalidCredentials(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid credentials'
    default_code = 'invalid_credentials'
    kind = 'InvalidCredentials'


class Unauthenticated(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Not authenticated'
    default_code = 'not_authenticated'
    kind = 'Unauthenticated'


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'
    kind = 'Forbidden'


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'
    kind = 'NotFound'


class InvalidOperation(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This operation is not allowed.'
    default_code = 'invalid_operation'
    kind = 'InvalidOperation'


class ServerError(MarketplaceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Server error'
    default_code = 'server_error'
    kind = 'ServerError'


# Kinds for exceptions DRF raises on its own
FRAMEWORK_KINDS = {
    exceptions.ValidationError: 'ValidationError',
    exceptions.ParseError: 'ValidationError',
    exceptions.NotAuthenticated: 'Unauthenticated',
    exceptions.AuthenticationFailed: 'Unauthenticated',
    exceptions.PermissionDenied: 'Forbidden',
    exceptions.NotFound: 'NotFound',
    exceptions.MethodNotAllowed: 'MethodNotAllowed',
    exceptions.UnsupportedMediaType: 'UnsupportedMediaType',
    exceptions.Throttled: 'Throttled',
}


def _first_error(detail, field=None):
    """
    Walk a DRF error structure and return ``(field, message)`` for the first entry.
    """
    if isinstance(detail, dict):
        for key, value in detail.items():
            name = field if key == 'non_field_errors' else key
            return _first_error(value, name)
        return field, ''
    if isinstance(detail, (list, tuple)):
        if not detail:
            return field, ''
        return _first_error(detail[0], field)
    return field, str(detail)


def _kind_for(exc):
    kind = getattr(exc, 'kind', None)
    if kind:
        return kind
    for exc_class, framework_kind in FRAMEWORK_KINDS.items():
        if isinstance(exc, exc_class):
            return framework_kind
    return 'Error'


def marketplace_exception_handler(exc, context):
    """
    DRF ``EXCEPTION_HANDLER`` that renders every error in the taxonomy shape.

    Exceptions DRF does not know about are logged with their traceback and
    reported as ``ServerError``.
    """
    if isinstance(exc, Http404):
        exc = exceptions.NotFound(*exc.args)
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied(*exc.args)

    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(
            f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}: {exc}"
        )
        return Response(
            {'error': ServerError.default_detail, 'kind': ServerError.kind},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    field = getattr(exc, 'field', None)
    if isinstance(exc, exceptions.ValidationError):
        field, message = _first_error(exc.detail)
    else:
        message = str(exc.detail) if hasattr(exc, 'detail') else str(exc)

    body = {'error': message, 'kind': _kind_for(exc)}
    if field:
        body['field'] = field
    response.data = body
    return response
