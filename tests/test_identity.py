"""
Tests for resolving bearer tokens through Supabase Auth.
"""

import httpx
import pytest
import respx

from conftest import SERVICE_KEY, SUPABASE_URL
from shared.errors import StoreError
from shared.identity import SupabaseIdentityClient

AUTH_URL = f"{SUPABASE_URL}/auth/v1/user"


@pytest.fixture
def identity_client():
    return SupabaseIdentityClient(SUPABASE_URL, SERVICE_KEY)


@respx.mock
def test_returns_user_id(identity_client):
    route = respx.get(AUTH_URL).mock(
        return_value=httpx.Response(200, json={"id": "user_123", "email": "reader@example.com"})
    )

    assert identity_client.get_user_id("access-token") == "user_123"

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer access-token"
    assert request.headers["apikey"] == SERVICE_KEY


@respx.mock
@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token_returns_none(identity_client, status):
    respx.get(AUTH_URL).mock(return_value=httpx.Response(status, json={"msg": "invalid JWT"}))

    assert identity_client.get_user_id("expired") is None


@respx.mock
def test_missing_id_returns_none(identity_client):
    respx.get(AUTH_URL).mock(return_value=httpx.Response(200, json={}))

    assert identity_client.get_user_id("access-token") is None


@respx.mock
def test_server_error_raises(identity_client):
    respx.get(AUTH_URL).mock(return_value=httpx.Response(502))

    with pytest.raises(StoreError):
        identity_client.get_user_id("access-token")


@respx.mock
def test_network_error_raises(identity_client):
    respx.get(AUTH_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

    with pytest.raises(StoreError):
        identity_client.get_user_id("access-token")
