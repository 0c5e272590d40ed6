"""
Create Checkout Session Endpoint - POST /api/checkout

Creates a Stripe Checkout session for the premium subscription.

Request body:
{
    "priceId": "price_...",
    "userId": "<supabase user id>",
    "userEmail": "reader@example.com",
    "successUrl": "https://...",   (optional)
    "cancelUrl": "https://..."     (optional)
}

Returns:
{
    "url": "https://checkout.stripe.com/..."
}
"""

import logging
from typing import Optional

import stripe

from shared.config import Settings, load_settings
from shared.errors import APIError, InvalidRequestError
from shared.logging_utils import bind, logged_handler
from shared.payments import create_checkout_session
from shared.request_utils import get_header, get_method, parse_json_body
from shared.response_utils import (
    api_error_response,
    error_response,
    get_cors_headers,
    options_response,
    success_response,
)
from shared.types import APIGatewayEvent, LambdaResponse

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ALLOWED_METHODS = "POST, OPTIONS"

_settings: Optional[Settings] = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def _required_string(body: dict, field: str) -> Optional[str]:
    value = body.get(field)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _optional_url(body: dict, field: str, default: str) -> str:
    value = body.get(field)
    if value is None or value == "":
        return default
    if not isinstance(value, str) or not value.startswith(("https://", "http://")):
        raise InvalidRequestError(f"'{field}' must be an http(s) URL")
    return value


def handle_request(event: APIGatewayEvent, settings: Settings) -> LambdaResponse:
    method = get_method(event)
    cors = get_cors_headers(get_header(event, "Origin"), settings.allowed_origins, ALLOWED_METHODS)

    if method == "OPTIONS":
        return options_response(cors)

    if method != "POST":
        return error_response(405, "method_not_allowed", "Method not allowed", headers=cors)

    try:
        body = parse_json_body(event)
        price_id = _required_string(body, "priceId")
        user_id = _required_string(body, "userId")
        user_email = _required_string(body, "userEmail")
        if not price_id or not user_id or not user_email:
            raise APIError("missing_fields", "Missing required fields", status_code=400)

        success_url = _optional_url(body, "successUrl", settings.success_url)
        cancel_url = _optional_url(body, "cancelUrl", settings.cancel_url)

        settings.require("stripe_secret_key")
        bind(user_id=user_id)
    except APIError as e:
        return api_error_response(e, headers=cors)

    try:
        url = create_checkout_session(
            settings.stripe_secret_key,
            price_id,
            user_id,
            user_email,
            success_url,
            cancel_url,
        )
    except stripe.InvalidRequestError as e:
        # Bad price id and the like; Stripe's message is safe to show
        logger.error(f"Stripe rejected checkout for user {user_id}: {e.user_message or e}")
        return error_response(
            400, "checkout_rejected", e.user_message or "Invalid checkout request", headers=cors
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout session: {e}")
        return error_response(500, "stripe_error", "Failed to create checkout session", headers=cors)
    except Exception as e:
        logger.error(f"Checkout error: {e}", exc_info=True)
        return error_response(500, "internal_error", "Failed to create checkout session", headers=cors)

    logger.info(f"Created checkout session for user {user_id}")
    return success_response({"url": url}, headers=cors)


@logged_handler("/api/checkout")
def handler(event, context):
    """Lambda handler for POST/OPTIONS /api/checkout."""
    return handle_request(event, _get_settings())
