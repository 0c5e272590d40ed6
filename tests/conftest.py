"""
Shared pytest fixtures for Story Realm tests.
"""

import hashlib
import hmac
import json
import os
import sys
import time

import pytest

# Add functions directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "functions"))

SUPABASE_URL = "https://project.supabase.co"
SERVICE_KEY = "service-role-key"
WEBHOOK_SECRET = "whsec_test_secret"
TODAY = "2024-01-02"
YESTERDAY = "2024-01-01"


def pytest_configure(config):
    """Set AWS credentials before test collection.

    boto3 clients created during a test need a region even under moto.
    """
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_REGION", "us-east-1")

    # Fresh httpx client per call so respx can intercept every request
    os.environ["USE_CONNECTION_POOLING"] = "false"


@pytest.fixture(autouse=True)
def aws_credentials():
    """Set fake AWS credentials for all tests."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"


@pytest.fixture(autouse=True)
def reset_cached_state():
    """Reset client singletons, secret cache and handler settings between tests."""
    yield
    from shared.aws_clients import reset_clients
    from shared.config import clear_secret_cache
    from shared.http_client import close_http_client

    reset_clients()
    clear_secret_cache()
    close_http_client()

    for module_name in ("api.user_data", "api.create_checkout", "api.stripe_webhook"):
        module = sys.modules.get(module_name)
        if module is not None:
            module._settings = None


@pytest.fixture
def settings():
    """Settings with every credential present."""
    from shared.config import Settings

    return Settings(
        supabase_url=SUPABASE_URL,
        supabase_service_key=SERVICE_KEY,
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def api_gateway_event():
    """Base API Gateway event for Lambda handler tests."""
    return {
        "httpMethod": "GET",
        "path": "/api/user",
        "headers": {},
        "pathParameters": {},
        "queryStringParameters": {},
        "body": None,
        "requestContext": {
            "requestId": "req-123",
            "identity": {"sourceIp": "127.0.0.1"},
        },
    }


@pytest.fixture
def current_record():
    """A record already rolled over for TODAY."""
    return {
        "user_id": "user_123",
        "is_premium": False,
        "stories_today": 2,
        "last_play_date": TODAY,
        "chosen_realm": "forest",
        "completed_today": False,
        "saved_stories": [{"title": "The Owl"}],
        "stripe_customer_id": None,
        "stripe_subscription_id": None,
    }


@pytest.fixture
def stale_record(current_record):
    """A record last touched YESTERDAY."""
    return {
        **current_record,
        "stories_today": 3,
        "last_play_date": YESTERDAY,
        "chosen_realm": "ocean",
        "completed_today": True,
    }


@pytest.fixture
def memory_store():
    from shared.store import InMemoryUserStore

    return InMemoryUserStore()


class FakeIdentity:
    """Stands in for SupabaseIdentityClient."""

    def __init__(self, tokens=None):
        self.tokens = tokens or {"good-token": "user_123"}
        self.calls = []

    def get_user_id(self, token):
        self.calls.append(token)
        return self.tokens.get(token)


@pytest.fixture
def identity():
    return FakeIdentity()


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, data_object: dict, event_id: str = "evt_123") -> str:
    """Serialized Stripe event envelope."""
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": data_object},
        }
    )
