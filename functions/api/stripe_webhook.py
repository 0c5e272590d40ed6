"""
Stripe Webhook Endpoint - POST /api/webhook

Mirrors subscription state from Stripe onto the user's ``is_premium`` flag.
Authenticated by the Stripe-Signature header instead of a bearer token.

Handles:
- checkout.session.completed: upgrade and link Stripe customer/subscription
- customer.subscription.deleted: downgrade
- customer.subscription.updated: premium while status is "active"

Anything else is acknowledged and logged. Store failures return 500 so
Stripe redelivers the event.
"""

import logging
from typing import Optional

import stripe

from shared.config import Settings, load_settings
from shared.errors import APIError, InvalidRequestError, StoreError
from shared.logging_utils import bind, logged_handler
from shared.payments import construct_event
from shared.request_utils import get_header, get_method, get_raw_body
from shared.response_utils import error_response, success_response
from shared.store import SupabaseUserStore, UserStore
from shared.subscription_mirror import mirror_event
from shared.types import APIGatewayEvent, LambdaResponse

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

_settings: Optional[Settings] = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def handle_request(
    event: APIGatewayEvent, settings: Settings, store: Optional[UserStore] = None
) -> LambdaResponse:
    if get_method(event) != "POST":
        return error_response(405, "method_not_allowed", "Method not allowed")

    if not settings.stripe_webhook_secret:
        logger.error("Stripe webhook secret not configured")
        return error_response(500, "stripe_not_configured", "Stripe not configured")

    sig_header = get_header(event, "Stripe-Signature")

    if not sig_header:
        logger.warning("Missing Stripe signature")
        return error_response(400, "missing_signature", "Missing Stripe signature")

    try:
        payload = get_raw_body(event)
    except InvalidRequestError as e:
        logger.warning(f"Unreadable webhook body: {e.message}")
        return error_response(400, "invalid_webhook_payload", "Invalid webhook payload")

    try:
        stripe_event = construct_event(payload, sig_header, settings.stripe_webhook_secret)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Invalid Stripe signature: {e}")
        return error_response(400, "invalid_signature", "Invalid signature")
    except ValueError as e:
        logger.warning(f"Webhook payload is not valid JSON: {e}")
        return error_response(400, "invalid_webhook_payload", "Invalid webhook payload")

    event_type = stripe_event.get("type")
    event_id = stripe_event.get("id")
    bind(stripe_event_id=event_id, stripe_event_type=event_type)
    logger.info(f"Processing Stripe event: {event_type} (id={event_id})")

    try:
        store = store or SupabaseUserStore.from_settings(settings)
        outcome = mirror_event(stripe_event, store)
    except StoreError as e:
        logger.error(f"Transient error handling {event_type} ({event_id}): {e}")
        return error_response(500, "temporary_error", "Temporary error, please retry")
    except APIError as e:
        logger.error(f"Cannot handle {event_type} ({event_id}): {e.code}")
        return error_response(e.status_code, e.code, e.message)
    except Exception as e:
        logger.error(f"Webhook error handling {event_type} ({event_id}): {e}", exc_info=True)
        return error_response(500, "webhook_failed", "Webhook handler failed")

    logger.info(f"Stripe event {event_id} -> {outcome}")
    return success_response({"received": True})


@logged_handler("/api/webhook")
def handler(event, context):
    """Lambda handler for Stripe webhooks."""
    return handle_request(event, _get_settings())
