# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Common middleware for Condo.

Includes error handling for database connection issues.
"""

import logging

from django.db import OperationalError
from django.http import JsonResponse

logger = logging.getLogger(__name__)

# Connection-level failures: the request can be retried once the database is back
CONNECTION_ERRORS = [
    "connection refused",
    "could not connect",
    "connection failed",
    "server closed the connection",
    "connection timed out",
    "no connection to the server",
    "terminating connection",
    "connection reset",
]

# Contention failures: a concurrent transaction won, retrying is safe
CONTENTION_ERRORS = [
    "deadlock detected",
    "could not serialize access",
    "lock timeout",
    "database is locked",
]


def is_transient_error(exc: Exception) -> bool:
    """Return True if the OperationalError is a retryable infrastructure failure."""
    if not isinstance(exc, OperationalError):
        return False
    error_message = str(exc).lower()
    return any(err in error_message for err in CONNECTION_ERRORS + CONTENTION_ERRORS)


class DatabaseErrorMiddleware:
    """
    Middleware that catches transient database errors and returns
    a retryable 503 JSON response instead of a 500 error.

    This is useful during:
    - Database maintenance/restarts
    - Deployments
    - Lock contention between concurrent check-ins or votes
    """

    retry_after = 30

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        try:
            response = self.get_response(request)
            return response
        except OperationalError as e:
            if is_transient_error(e):
                logger.error(f"Database connection error: {e}")
                return self._unavailable_response()
            raise

    def process_exception(self, request, exception):
        """Handle errors raised inside views before Django converts them to a 500."""
        if is_transient_error(exception):
            logger.error(f"Transient database error on {request.path}: {exception}")
            return self._unavailable_response()
        return None

    def _unavailable_response(self):
        """Return the transient-failure response with a 503 status."""
        return JsonResponse(
            {
                "error": "service_unavailable",
                "message": "The service is temporarily unavailable. Please try again.",
                "retryable": True,
            },
            status=503,
            headers={"Retry-After": str(self.retry_after)},
        )
