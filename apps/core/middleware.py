"""
Request middleware: correlation id propagation.
"""

import uuid

from .logging import set_correlation_id

CORRELATION_HEADER = 'HTTP_X_CORRELATION_ID'


class CorrelationIdMiddleware:
    """Attach an X-Correlation-ID to every request/response and to log records."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        correlation_id = request.META.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.correlation_id = correlation_id
        set_correlation_id(correlation_id)
        try:
            response = self.get_response(request)
        finally:
            set_correlation_id(None)
        response['X-Correlation-ID'] = correlation_id
        return response
