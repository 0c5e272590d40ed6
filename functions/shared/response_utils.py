"""
API Gateway proxy responses with JSON bodies and CORS headers.
"""

import json
from typing import Any, Dict, Iterable, Optional

DEFAULT_ALLOWED_HEADERS = "Content-Type, Authorization"


def get_cors_headers(
    origin: Optional[str],
    allowed_origins: Iterable[str] = ("*",),
    methods: str = "GET, POST, OPTIONS",
) -> Dict[str, str]:
    """
    CORS headers for a request origin.

    A "*" entry in allowed_origins allows any caller. Otherwise a listed
    origin is echoed back with Vary: Origin, and an unlisted one gets no
    CORS headers at all.
    """
    allowed = tuple(allowed_origins)
    if "*" in allowed:
        allow_origin = "*"
    elif origin and origin in allowed:
        allow_origin = origin
    else:
        return {}

    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": DEFAULT_ALLOWED_HEADERS,
    }
    if allow_origin != "*":
        headers["Vary"] = "Origin"
    return headers


def _response(status_code: int, body: str, headers: Optional[Dict[str, str]]) -> dict:
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)
    return {"statusCode": status_code, "headers": response_headers, "body": body}


def error_response(
    status_code: int,
    code: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    details: Optional[Dict[str, Any]] = None,
) -> dict:
    """
    Error envelope shared by every handler:

        {"error": {"code": "invalid_action", "message": "...", "details": {...}}}

    ``details`` is omitted when empty. Messages must be safe to show to the
    client; upstream failure details belong in the logs.
    """
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return _response(status_code, json.dumps({"error": error}), headers)


def api_error_response(error, headers: Optional[Dict[str, str]] = None) -> dict:
    """Render an APIError with the caller's response headers."""
    return error_response(
        error.status_code,
        error.code,
        error.message,
        headers=headers,
        details=error.details or None,
    )


def success_response(
    data: Any,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> dict:
    return _response(status_code, json.dumps(data), headers)


def options_response(headers: Optional[Dict[str, str]] = None) -> dict:
    """Empty 200 for CORS preflight requests."""
    return _response(200, "", headers)
