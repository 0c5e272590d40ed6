"""
User record store.

``UserStore`` is the seam between handler logic and Supabase. Production
code uses ``SupabaseUserStore`` (PostgREST over httpx); tests and local
runs use ``InMemoryUserStore``.

Writes are last-write-wins: PostgREST PATCH replaces the listed columns,
so two overlapping read-modify-write sequences for the same user keep
whichever write lands second.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from shared.constants import (
    RETRYABLE_STATUS_CODES,
    SUPABASE_REST_PATH,
    USER_DATA_TABLE,
)
from shared.errors import DuplicateUserError, StoreError, TransientStoreError
from shared.http_client import build_timeout, get_http_client
from shared.logging_utils import ExternalCall
from shared.retry import RetryPolicy, retry_call
from shared.types import UserRecord

logger = logging.getLogger(__name__)

STORE_RETRY_POLICY = RetryPolicy(attempts=3, base_delay=0.2, max_delay=2.0, deadline=8.0)


def _retry_after(response: httpx.Response) -> Optional[float]:
    """Retry-After in seconds. HTTP-date values are ignored."""
    value = response.headers.get("Retry-After", "")
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class UserStore(ABC):
    """Read and write ``user_data`` records."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]:
        """Return the record for user_id, or None if there is none."""

    @abstractmethod
    def insert_user(self, record: UserRecord) -> None:
        """Insert a complete new record.

        Raises:
            DuplicateUserError: If a record for the user already exists
        """

    @abstractmethod
    def patch_user(self, user_id: str, patch: dict[str, Any]) -> None:
        """Apply a partial update to the record for user_id."""

    @abstractmethod
    def find_by_customer_id(self, customer_id: str) -> Optional[UserRecord]:
        """Return the record linked to a Stripe customer, or None."""


class InMemoryUserStore(UserStore):
    """Dict-backed store.

    Returns copies so callers can't mutate stored state behind the
    store's back, matching the detached rows a real backend returns.
    """

    def __init__(self, records: Optional[list[UserRecord]] = None):
        self.records: dict[str, UserRecord] = {}
        self.patches: list[tuple[str, dict[str, Any]]] = []
        for record in records or []:
            self.records[record["user_id"]] = copy.deepcopy(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        record = self.records.get(user_id)
        return copy.deepcopy(record) if record is not None else None

    def insert_user(self, record: UserRecord) -> None:
        user_id = record["user_id"]
        if user_id in self.records:
            raise DuplicateUserError(user_id)
        self.records[user_id] = copy.deepcopy(record)

    def patch_user(self, user_id: str, patch: dict[str, Any]) -> None:
        self.patches.append((user_id, copy.deepcopy(patch)))
        # PostgREST PATCH on a filter with no matches is a silent no-op
        if user_id in self.records:
            self.records[user_id].update(copy.deepcopy(patch))

    def find_by_customer_id(self, customer_id: str) -> Optional[UserRecord]:
        for record in self.records.values():
            if record.get("stripe_customer_id") == customer_id:
                return copy.deepcopy(record)
        return None


class SupabaseUserStore(UserStore):
    """PostgREST client for the ``user_data`` table."""

    service = "supabase"

    def __init__(
        self,
        base_url: str,
        service_key: str,
        client: Optional[httpx.Client] = None,
        timeout: Optional[httpx.Timeout] = None,
        retry_policy: RetryPolicy = STORE_RETRY_POLICY,
    ):
        self.table_url = f"{base_url.rstrip('/')}{SUPABASE_REST_PATH}/{USER_DATA_TABLE}"
        self.client = client or get_http_client(timeout or build_timeout())
        self.retry_policy = retry_policy
        self.headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
        }

    @classmethod
    def from_settings(cls, settings) -> "SupabaseUserStore":
        settings.require("supabase_url", "supabase_service_key")
        return cls(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=build_timeout(settings.timeout_seconds, settings.connect_timeout_seconds),
        )

    @staticmethod
    def _eq(value: str) -> str:
        return f"eq.{value}"

    def _request(
        self,
        operation: str,
        method: str,
        params: dict,
        json_body: Any = None,
        extra_headers: Optional[dict] = None,
    ) -> httpx.Response:
        """Send one request, mapping failures onto StoreError."""
        headers = dict(self.headers)
        if json_body is not None:
            headers["Content-Type"] = "application/json"
        if extra_headers:
            headers.update(extra_headers)

        try:
            with ExternalCall(logger, self.service, operation) as call:
                response = self.client.request(
                    method, self.table_url, params=params, json=json_body, headers=headers
                )
                if not response.is_success:
                    call.fail(f"HTTP {response.status_code}")
        except httpx.TransportError as e:
            raise TransientStoreError(operation, None, str(e)) from e

        if response.is_success:
            return response

        reason = response.text[:200]
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientStoreError(
                operation, response.status_code, reason, retry_after=_retry_after(response)
            )
        raise StoreError(operation, response.status_code, reason)

    def _select_one(self, operation: str, column: str, value: str) -> Optional[UserRecord]:
        response = retry_call(
            self._request,
            operation,
            "GET",
            {column: self._eq(value), "select": "*", "limit": "1"},
            policy=self.retry_policy,
        )
        try:
            rows = response.json()
        except ValueError as e:
            raise StoreError(operation, response.status_code, "invalid JSON body") from e
        if not isinstance(rows, list):
            raise StoreError(operation, response.status_code, "expected a JSON array")
        return rows[0] if rows else None

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._select_one("get_user", "user_id", user_id)

    def find_by_customer_id(self, customer_id: str) -> Optional[UserRecord]:
        return self._select_one("find_by_customer_id", "stripe_customer_id", customer_id)

    def insert_user(self, record: UserRecord) -> None:
        # Single attempt. ignore-duplicates turns a conflicting insert into a
        # no-op; a 409 still arrives when the table lacks a unique user_id.
        try:
            self._request(
                "insert_user",
                "POST",
                {},
                json_body=dict(record),
                extra_headers={"Prefer": "return=minimal,resolution=ignore-duplicates"},
            )
        except StoreError as e:
            if e.upstream_status == 409:
                raise DuplicateUserError(record["user_id"]) from e
            raise

    def patch_user(self, user_id: str, patch: dict[str, Any]) -> None:
        retry_call(
            self._request,
            "patch_user",
            "PATCH",
            {"user_id": self._eq(user_id)},
            json_body=patch,
            policy=self.retry_policy,
        )
