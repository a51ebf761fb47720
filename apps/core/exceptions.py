"""
Custom Exception Handler for DRF
"""

from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from rest_framework.exceptions import (
    AuthenticationFailed,
    NotAuthenticated,
    PermissionDenied,
    Throttled,
    ValidationError as DRFValidationError,
)
from django.core.exceptions import ValidationError as DjangoValidationError
import logging

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security.audit")


def custom_exception_handler(exc, context):
    """
    Convert every exception into the ``{success, error, details}`` envelope.
    """
    if isinstance(exc, APIException):
        if exc.status_code in (401, 403):
            _log_security_event(exc, context, exc.status_code)
        return Response(
            {'success': False, 'error': exc.message, 'details': exc.details},
            status=exc.status_code,
        )

    if isinstance(exc, DjangoValidationError):
        logger.warning("Validation error: %s", exc)
        detail = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        exc = DRFValidationError(detail=detail)

    # Call REST framework's default exception handler (handles Http404 and
    # django PermissionDenied too)
    response = exception_handler(exc, context)

    if response is not None:
        _log_security_event(exc, context, response.status_code)
        response.data = {
            'success': False,
            'error': get_error_message(response.data),
            'details': response.data if isinstance(response.data, (dict, list)) else None,
        }
        return response

    # Log unexpected exceptions
    logger.exception("Unexpected error: %s", exc)

    return Response(
        {
            'success': False,
            'error': 'Internal Server Error',
            'details': str(exc),
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def _log_security_event(exc, context, status_code):
    if status_code not in (401, 403, 429):
        return

    request = context.get("request")
    if request is None:
        return

    user = getattr(request, "user", None)
    user_id = getattr(user, "id", None) if user and getattr(user, "is_authenticated", False) else None
    exc_name = exc.__class__.__name__
    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        event_type = "auth_failed"
    elif isinstance(exc, (PermissionDenied, PermissionDeniedException)):
        event_type = "permission_denied"
    elif isinstance(exc, Throttled):
        event_type = "throttled"
    else:
        event_type = "security_event"

    security_logger.warning(
        "api_security_event type=%s status=%s method=%s path=%s user_id=%s ip=%s error=%s",
        event_type,
        status_code,
        request.method,
        request.path,
        user_id,
        request.META.get("REMOTE_ADDR"),
        exc_name,
    )


def get_error_message(data):
    """Extract a user-friendly error message from response data"""
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        if 'non_field_errors' in data:
            return str(data['non_field_errors'][0])
        # Get first error message
        for key, value in data.items():
            if isinstance(value, list) and value:
                return f"{key}: {value[0]}"
            elif isinstance(value, str):
                return f"{key}: {value}"
    elif isinstance(data, list) and data:
        return str(data[0])
    return str(data)


class APIException(Exception):
    """Base exception for API errors"""
    
    def __init__(self, message, code=None, status_code=status.HTTP_400_BAD_REQUEST, details=None):
        self.message = message
        self.code = code or 'error'
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationException(APIException):
    """Validation error exception"""
    
    def __init__(self, message, field=None, details=None):
        super().__init__(message, code='validation_error', status_code=status.HTTP_400_BAD_REQUEST, details=details)
        self.field = field


class BusinessRuleException(APIException):
    """A request that is well-formed but not allowed in the current state"""

    def __init__(self, message, details=None):
        super().__init__(message, code='business_rule', status_code=status.HTTP_400_BAD_REQUEST, details=details)


class PermissionDeniedException(APIException):
    """Permission denied exception"""
    
    def __init__(self, message="You do not have permission to perform this action"):
        super().__init__(message, code='permission_denied', status_code=status.HTTP_403_FORBIDDEN)


class ResourceNotFoundException(APIException):
    """Resource not found exception"""
    
    def __init__(self, resource_type, resource_id=None):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message, code='not_found', status_code=status.HTTP_404_NOT_FOUND)


class ConflictException(APIException):
    """Conflict exception (e.g., duplicate resource)"""
    
    def __init__(self, message):
        super().__init__(message, code='conflict', status_code=status.HTTP_409_CONFLICT)
