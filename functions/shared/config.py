"""
Handler configuration.

Credentials are loaded once per cold start into an immutable ``Settings``
object that is passed to the code that needs it. Secrets can be supplied
directly through environment variables or by Secrets Manager ARN.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from shared.aws_clients import get_secretsmanager
from shared.constants import (
    CONNECT_TIMEOUT,
    DEFAULT_CANCEL_URL,
    DEFAULT_SUCCESS_URL,
    DEFAULT_TIMEOUT,
    SECRETS_CACHE_TTL,
)
from shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Cached secret values keyed by ARN: arn -> (value, fetched_at)
_secret_cache: dict[str, tuple[str, float]] = {}


@dataclass(frozen=True)
class Settings:
    """Everything a handler needs to talk to Supabase and Stripe."""

    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    success_url: str = DEFAULT_SUCCESS_URL
    cancel_url: str = DEFAULT_CANCEL_URL
    allowed_origins: tuple[str, ...] = field(default=("*",))
    timeout_seconds: float = DEFAULT_TIMEOUT
    connect_timeout_seconds: float = CONNECT_TIMEOUT

    def require(self, *names: str) -> None:
        """Raise ConfigurationError for the first unset setting in names."""
        for name in names:
            if not getattr(self, name):
                logger.error(f"Missing required setting: {name}")
                raise ConfigurationError(name)


def _get_secret(arn: str, json_key: str) -> Optional[str]:
    """Fetch a secret string from Secrets Manager (cached with TTL).

    The secret may be stored as a raw string or as JSON with the value
    under json_key.
    """
    cached = _secret_cache.get(arn)
    if cached and (time.time() - cached[1]) < SECRETS_CACHE_TTL:
        return cached[0]

    try:
        response = get_secretsmanager().get_secret_value(SecretId=arn)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to retrieve secret {arn}: {e}")
        return None

    secret_value = response.get("SecretString", "")
    try:
        secret_json = json.loads(secret_value)
        value = secret_json.get(json_key) if isinstance(secret_json, dict) else None
        value = value or secret_value
    except json.JSONDecodeError:
        value = secret_value

    _secret_cache[arn] = (value, time.time())
    return value


def _resolve_secret(env_name: str, arn_env_name: str, json_key: str) -> Optional[str]:
    """Plain env var wins; otherwise look the ARN up in Secrets Manager."""
    value = os.environ.get(env_name)
    if value:
        return value

    arn = os.environ.get(arn_env_name)
    if arn:
        return _get_secret(arn, json_key)
    return None


def _parse_origins(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return ("*",)
    origins = tuple(o.strip() for o in raw.split(",") if o.strip())
    return origins or ("*",)


def _parse_timeout(raw: Optional[str], default: float) -> float:
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid timeout value {raw!r}")
        return default
    return value if value > 0 else default


def load_settings() -> Settings:
    """Build Settings from the Lambda environment."""
    supabase_url = os.environ.get("SUPABASE_URL") or None
    if supabase_url:
        supabase_url = supabase_url.rstrip("/")

    return Settings(
        supabase_url=supabase_url,
        supabase_service_key=_resolve_secret(
            "SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_KEY_ARN", "key"
        ),
        stripe_secret_key=_resolve_secret("STRIPE_SECRET_KEY", "STRIPE_SECRET_ARN", "key"),
        stripe_webhook_secret=_resolve_secret(
            "STRIPE_WEBHOOK_SECRET", "STRIPE_WEBHOOK_SECRET_ARN", "secret"
        ),
        success_url=os.environ.get("CHECKOUT_SUCCESS_URL") or DEFAULT_SUCCESS_URL,
        cancel_url=os.environ.get("CHECKOUT_CANCEL_URL") or DEFAULT_CANCEL_URL,
        allowed_origins=_parse_origins(os.environ.get("ALLOWED_ORIGINS")),
        timeout_seconds=_parse_timeout(os.environ.get("STORE_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT),
    )


def clear_secret_cache() -> None:
    """Forget cached secrets. Used in tests for clean state."""
    _secret_cache.clear()
