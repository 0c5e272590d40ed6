"""
Stripe access for checkout and webhooks.

The API key is passed per request rather than assigned to ``stripe.api_key``
so handlers never share credentials through module state.
"""

import json
import logging
from typing import Optional

import stripe

from shared.logging_utils import ExternalCall

logger = logging.getLogger(__name__)

# Seconds a signed webhook stays acceptable after its signing timestamp
WEBHOOK_TOLERANCE = 300


def build_checkout_params(
    price_id: str,
    user_id: str,
    user_email: str,
    success_url: str,
    cancel_url: str,
) -> dict:
    """Parameters for a single-seat subscription Checkout session."""
    return {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "customer_email": user_email,
        "client_reference_id": user_id,
        "metadata": {"user_id": user_id},
    }


def create_checkout_session(
    api_key: str,
    price_id: str,
    user_id: str,
    user_email: str,
    success_url: str,
    cancel_url: str,
) -> Optional[str]:
    """Create a hosted Checkout session and return its URL.

    Raises:
        stripe.StripeError: On any Stripe API failure
    """
    params = build_checkout_params(price_id, user_id, user_email, success_url, cancel_url)

    with ExternalCall(logger, "stripe", "checkout.Session.create"):
        session = stripe.checkout.Session.create(api_key=api_key, **params)
    return session.url


def construct_event(payload: str, sig_header: str, webhook_secret: str) -> dict:
    """Verify a webhook signature and decode the event.

    The Stripe-Signature header carries a timestamp and one or more v1
    HMAC-SHA256 signatures of "{timestamp}.{payload}" keyed with the
    endpoint secret.

    Raises:
        stripe.SignatureVerificationError: If no signature matches or
            the timestamp is outside the tolerance window
        ValueError: If the verified payload is not a JSON object
    """
    stripe.WebhookSignature.verify_header(payload, sig_header, webhook_secret, WEBHOOK_TOLERANCE)

    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValueError("Webhook payload is not a JSON object")
    return event
