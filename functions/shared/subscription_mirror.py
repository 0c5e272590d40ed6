"""
Mirror Stripe subscription state onto the ``is_premium`` flag.

Stripe delivers webhooks at least once, so every branch is safe to replay:
patches are absolute values and a missing user is a logged no-op.
"""

import logging
from typing import Callable, Optional

from shared.constants import (
    CHECKOUT_COMPLETED,
    PREMIUM_STATUS,
    SUBSCRIPTION_DELETED,
    SUBSCRIPTION_UPDATED,
)
from shared.store import UserStore

logger = logging.getLogger(__name__)

APPLIED = "applied"
NO_MATCH = "no_match"
IGNORED = "ignored"


def checkout_completed_patch(session: dict) -> dict:
    return {
        "is_premium": True,
        "stripe_customer_id": session.get("customer"),
        "stripe_subscription_id": session.get("subscription"),
    }


def subscription_updated_patch(subscription: dict) -> dict:
    return {"is_premium": subscription.get("status") == PREMIUM_STATUS}


def _checkout_user_id(session: dict) -> Optional[str]:
    metadata = session.get("metadata") or {}
    return session.get("client_reference_id") or metadata.get("user_id")


def _handle_checkout_completed(session: dict, store: UserStore) -> str:
    """Upgrade the user named on the Checkout session."""
    user_id = _checkout_user_id(session)
    if not user_id:
        logger.warning(f"Checkout session {session.get('id')} has no user reference")
        return NO_MATCH

    store.patch_user(user_id, checkout_completed_patch(session))
    logger.info(f"User {user_id} upgraded to premium")
    return APPLIED


def _patch_by_customer(subscription: dict, store: UserStore, patch: dict) -> str:
    customer_id = subscription.get("customer")
    if not customer_id:
        logger.warning(f"Subscription {subscription.get('id')} has no customer")
        return NO_MATCH

    record = store.find_by_customer_id(customer_id)
    if not record:
        logger.info(f"No user found for customer {customer_id}")
        return NO_MATCH

    store.patch_user(record["user_id"], patch)
    return APPLIED


def _handle_subscription_deleted(subscription: dict, store: UserStore) -> str:
    outcome = _patch_by_customer(subscription, store, {"is_premium": False})
    if outcome == APPLIED:
        logger.info(f"Customer {subscription.get('customer')} downgraded from premium")
    return outcome


def _handle_subscription_updated(subscription: dict, store: UserStore) -> str:
    patch = subscription_updated_patch(subscription)
    outcome = _patch_by_customer(subscription, store, patch)
    if outcome == APPLIED:
        logger.info(
            f"Customer {subscription.get('customer')} subscription "
            f"{subscription.get('status')} -> is_premium={patch['is_premium']}"
        )
    return outcome


EVENT_HANDLERS: dict[str, Callable[[dict, UserStore], str]] = {
    CHECKOUT_COMPLETED: _handle_checkout_completed,
    SUBSCRIPTION_DELETED: _handle_subscription_deleted,
    SUBSCRIPTION_UPDATED: _handle_subscription_updated,
}


def mirror_event(event: dict, store: UserStore) -> str:
    """
    Apply one Stripe event to the store.

    Args:
        event: Verified Stripe event with ``type`` and ``data.object``
        store: Where user records live

    Returns:
        APPLIED, NO_MATCH or IGNORED

    Raises:
        StoreError: If the store fails; the caller should let Stripe retry
    """
    event_type = event.get("type")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return IGNORED

    data = event.get("data")
    data_object = data.get("object") if isinstance(data, dict) else None
    if data_object is None:
        data_object = {}
    if not isinstance(data_object, dict):
        logger.warning(f"Event {event.get('id')} ({event_type}) has a malformed data.object")
        return IGNORED
    return handler(data_object, store)
