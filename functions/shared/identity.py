"""
Bearer token resolution against Supabase Auth.

Token issuance and session handling belong to Supabase; this module only
asks it who a token belongs to.
"""

import logging
from typing import Optional

import httpx

from shared.constants import SUPABASE_AUTH_PATH
from shared.errors import StoreError
from shared.http_client import build_timeout, get_http_client
from shared.logging_utils import ExternalCall

logger = logging.getLogger(__name__)

REJECTED_TOKEN_STATUSES = (400, 401, 403, 404)


class SupabaseIdentityClient:
    """Resolves access tokens to Supabase user ids."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        client: Optional[httpx.Client] = None,
        timeout: Optional[httpx.Timeout] = None,
    ):
        self.user_url = f"{base_url.rstrip('/')}{SUPABASE_AUTH_PATH}/user"
        self.service_key = service_key
        self.client = client or get_http_client(timeout or build_timeout())

    @classmethod
    def from_settings(cls, settings) -> "SupabaseIdentityClient":
        settings.require("supabase_url", "supabase_service_key")
        return cls(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=build_timeout(settings.timeout_seconds, settings.connect_timeout_seconds),
        )

    def get_user_id(self, token: str) -> Optional[str]:
        """Return the user id for token, or None if Supabase rejects it.

        Raises:
            StoreError: If Supabase Auth is unreachable or fails
        """
        try:
            with ExternalCall(logger, "supabase_auth", "get_user") as call:
                response = self.client.get(
                    self.user_url,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "apikey": self.service_key,
                    },
                )
                # A rejected token is a successful call with a negative answer
                if not response.is_success and response.status_code not in REJECTED_TOKEN_STATUSES:
                    call.fail(f"HTTP {response.status_code}")
        except httpx.TransportError as e:
            raise StoreError("get_auth_user", None, str(e)) from e

        if response.status_code in REJECTED_TOKEN_STATUSES:
            logger.info(f"Supabase rejected access token ({response.status_code})")
            return None

        if not response.is_success:
            raise StoreError("get_auth_user", response.status_code, response.text[:200])

        try:
            user = response.json()
        except ValueError as e:
            raise StoreError("get_auth_user", response.status_code, "invalid JSON body") from e

        user_id = user.get("id") if isinstance(user, dict) else None
        return user_id or None
