import structlog
import traceback
from datetime import datetime, timezone
from django.http import JsonResponse
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from livestock.exceptions import (
    LedgerError, Unauthorized, NotFound, NotStaked, AlreadyStaked,
    InvalidAddress, InvalidReceiver, InvalidMetadata
)

logger = structlog.get_logger(__name__)

# HTTP status for each ledger error; subclasses resolve through the MRO
LEDGER_ERROR_STATUS = {
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    NotStaked: status.HTTP_409_CONFLICT,
    AlreadyStaked: status.HTTP_409_CONFLICT,
    InvalidAddress: status.HTTP_400_BAD_REQUEST,
    InvalidReceiver: status.HTTP_400_BAD_REQUEST,
    InvalidMetadata: status.HTTP_400_BAD_REQUEST,
}

LEDGER_ERROR_TYPES = {
    Unauthorized: 'unauthorized',
    NotFound: 'not_found',
    NotStaked: 'not_staked',
    AlreadyStaked: 'already_staked',
    InvalidAddress: 'invalid_address',
    InvalidReceiver: 'invalid_receiver',
    InvalidMetadata: 'invalid_metadata',
}


def _timestamp():
    return datetime.now(timezone.utc).isoformat()


class GlobalExceptionMiddleware:
    """
    Global exception handling middleware for Django.
    Catches unhandled exceptions and returns structured JSON responses.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)
        return response

    def process_exception(self, request, exception):
        """
        Process unhandled exceptions and return structured error responses.
        """
        logger.error(
            "Unhandled exception occurred",
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            path=request.path,
            method=request.method,
            exc_info=True
        )

        error_response = {
            'error': {
                'type': 'internal_server_error',
                'message': 'An internal server error occurred',
                'status_code': status.HTTP_500_INTERNAL_SERVER_ERROR,
                'timestamp': _timestamp(),
            }
        }

        # In development, include more details
        if settings.DEBUG:
            error_response['error']['debug'] = {
                'exception_type': type(exception).__name__,
                'exception_message': str(exception),
                'traceback': traceback.format_exc().split('\n')
            }

        return JsonResponse(
            error_response,
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content_type='application/json'
        )


def _ledger_error_response(exc):
    for exc_class in type(exc).__mro__:
        if exc_class in LEDGER_ERROR_STATUS:
            return LEDGER_ERROR_STATUS[exc_class], LEDGER_ERROR_TYPES[exc_class]
    return status.HTTP_400_BAD_REQUEST, 'ledger_error'


def custom_exception_handler(exc, context):
    """
    Custom exception handler for Django REST Framework.

    Turns ledger errors into structured 4xx responses and wraps DRF's own
    error responses in the same envelope.
    """
    request = context.get('request')
    view = context.get('view')

    if isinstance(exc, LedgerError):
        status_code, error_type = _ledger_error_response(exc)
        logger.info(
            "Ledger request rejected",
            exception_type=type(exc).__name__,
            exception_message=str(exc),
            status_code=status_code,
            path=getattr(request, 'path', None),
            method=getattr(request, 'method', None)
        )
        return Response(
            {
                'error': {
                    'type': error_type,
                    'message': str(exc),
                    'status_code': status_code,
                    'timestamp': _timestamp(),
                }
            },
            status=status_code
        )

    response = drf_exception_handler(exc, context)

    if response is not None:
        logger.warning(
            "API exception occurred",
            exception_type=type(exc).__name__,
            exception_message=str(exc),
            status_code=response.status_code,
            path=getattr(request, 'path', None),
            method=getattr(request, 'method', None),
            view_name=type(view).__name__ if view is not None else None
        )

        response.data = {
            'error': {
                'type': 'api_error',
                'message': 'API request failed',
                'status_code': response.status_code,
                'timestamp': _timestamp(),
                'details': response.data
            }
        }

    return response
