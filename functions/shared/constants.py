"""
Shared constants for Story Realm.
"""

# Saved story history cap (newest first)
MAX_SAVED_STORIES = 50

# Supabase
USER_DATA_TABLE = "user_data"
SUPABASE_REST_PATH = "/rest/v1"
SUPABASE_AUTH_PATH = "/auth/v1"

# Stripe event kinds mirrored into the store
CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"

# Only this subscription status counts as premium
PREMIUM_STATUS = "active"

# Checkout redirect defaults
DEFAULT_SUCCESS_URL = "https://mystoryrealm.com?success=true"
DEFAULT_CANCEL_URL = "https://mystoryrealm.com?canceled=true"

# Timeouts
DEFAULT_TIMEOUT = 10.0
CONNECT_TIMEOUT = 5.0

# Upstream statuses worth retrying
RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)

# Secrets Manager cache lifetime
SECRETS_CACHE_TTL = 300  # 5 minutes
