"""
Exception handling for the risk register API.

Every error leaves as ``{"message": ..., "errors": ...}``.
"""

import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from risks.exceptions import ConflictState, Forbidden, NotFound, RiskRegisterError, ValidationFailed

logger = logging.getLogger(__name__)

DOMAIN_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    ValidationFailed: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConflictState: status.HTTP_409_CONFLICT,
}


def error_body(message, errors=None):
    body = {'message': message}
    if errors:
        body['errors'] = errors
    return body


def _as_error_lists(detail):
    """Flatten DRF error details into field -> [messages]."""
    if isinstance(detail, dict):
        return {
            field: [str(item) for item in (messages if isinstance(messages, list) else [messages])]
            for field, messages in detail.items()
        }
    if isinstance(detail, list):
        return {'non_field_errors': [str(item) for item in detail]}
    return {'non_field_errors': [str(detail)]}


def register_exception_handler(exc, context):
    """Translate domain and DRF errors into the API's error shape."""
    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else 'unknown view'

    if isinstance(exc, RiskRegisterError):
        code = DOMAIN_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        logger.warning(f"{type(exc).__name__} in {view_name}: {exc.message}")
        return Response(error_body(exc.message, exc.errors), status=code)

    if isinstance(exc, exceptions.ValidationError):
        errors = _as_error_lists(exc.detail)
        logger.warning(f"Validation failed in {view_name}: {errors}")
        return Response(
            error_body('Validation failed', errors),
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        response.status_code = status.HTTP_401_UNAUTHORIZED
        response.data = error_body('Unauthenticated.')
    elif isinstance(response.data, dict) and 'detail' in response.data:
        response.data = error_body(str(response.data['detail']))
    return response
