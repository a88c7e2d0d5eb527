# SPDX-License-Identifier: AGPL-3.0-or-later
"""
View mixins shared by the JSON endpoints.

Provides:
- JSONViewMixin: JSON responses, request body parsing, error rendering
"""

import json
from datetime import datetime
from typing import Any

from django.http import JsonResponse


def iso_datetime(dt: datetime | None) -> str | None:
    """Format datetime as ISO 8601."""
    if dt is None:
        return None
    return dt.isoformat()


class InvalidJSONBody(Exception):
    """Raised when a request body is not a JSON object."""


class JSONViewMixin:
    """Mixin for JSON API views."""

    def json_response(self, data: Any, status: int = 200) -> JsonResponse:
        """Return JSON response with proper headers."""
        response = JsonResponse(data, safe=False, status=status, json_dumps_params={"ensure_ascii": False})
        response["Content-Type"] = "application/json; charset=utf-8"
        return response

    def error_response(self, error: str, message: str, status: int) -> JsonResponse:
        """Return the standard error body."""
        return self.json_response({"error": error, "message": message}, status=status)

    def parse_json_body(self, request) -> dict:
        """Decode the request body as a JSON object (empty body -> {})."""
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidJSONBody("Request body is not valid JSON")
        if not isinstance(data, dict):
            raise InvalidJSONBody("Request body must be a JSON object")
        return data
