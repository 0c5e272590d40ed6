"""Shared request utilities for API handlers."""

import base64
import binascii
import json
import logging
from typing import Optional

from shared.errors import InvalidRequestError

logger = logging.getLogger(__name__)


def get_header(event: dict, name: str) -> Optional[str]:
    """Case-insensitive header lookup.

    API Gateway preserves client casing for REST APIs and lower-cases
    everything for HTTP APIs, so both spellings show up.
    """
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def get_method(event: dict) -> str:
    """HTTP method for REST (v1) and HTTP (v2) API Gateway payloads."""
    method = event.get("httpMethod")
    if not method:
        method = event.get("requestContext", {}).get("http", {}).get("method", "")
    return method.upper()


def get_bearer_token(event: dict) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    auth_header = get_header(event, "Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def get_raw_body(event: dict) -> str:
    """Request body exactly as received (decoding base64 if needed).

    Raises:
        InvalidRequestError: If a base64 body is malformed or not UTF-8
    """
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise InvalidRequestError("Request body is not valid base64-encoded UTF-8")
    return body


def parse_json_body(event: dict) -> dict:
    """Parse the request body as a JSON object.

    Raises:
        InvalidRequestError: If the body is not valid JSON or not an object
    """
    raw = get_raw_body(event) or "{}"
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise InvalidRequestError("Request body must be valid JSON")

    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body
