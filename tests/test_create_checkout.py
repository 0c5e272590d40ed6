"""
Tests for the create checkout session handler.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import stripe

from shared.config import Settings
from shared.constants import DEFAULT_CANCEL_URL, DEFAULT_SUCCESS_URL

VALID_BODY = {
    "priceId": "price_premium",
    "userId": "user_123",
    "userEmail": "reader@example.com",
}


def _post(event, body):
    event["httpMethod"] = "POST"
    event["path"] = "/api/checkout"
    event["body"] = body if isinstance(body, str) else json.dumps(body)
    return event


class TestCreateCheckoutHandler:
    def test_options_preflight(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        api_gateway_event["httpMethod"] = "OPTIONS"

        result = handle_request(api_gateway_event, settings)

        assert result["statusCode"] == 200
        assert result["headers"]["Access-Control-Allow-Methods"] == "POST, OPTIONS"

    def test_get_not_allowed(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        result = handle_request(api_gateway_event, settings)

        assert result["statusCode"] == 405

    @pytest.mark.parametrize("missing", ["priceId", "userId", "userEmail"])
    def test_missing_fields_return_400(self, api_gateway_event, settings, missing):
        from api.create_checkout import handle_request

        body = {k: v for k, v in VALID_BODY.items() if k != missing}

        with patch("stripe.checkout.Session.create") as mock_create:
            result = handle_request(_post(api_gateway_event, body), settings)

        assert result["statusCode"] == 400
        body = json.loads(result["body"])
        assert body["error"]["code"] == "missing_fields"
        assert body["error"]["message"] == "Missing required fields"
        mock_create.assert_not_called()

    def test_invalid_json_returns_400(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        result = handle_request(_post(api_gateway_event, "{oops"), settings)

        assert result["statusCode"] == 400
        assert json.loads(result["body"])["error"]["code"] == "invalid_request"

    def test_bad_redirect_url_returns_400(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        body = {**VALID_BODY, "successUrl": "javascript:alert(1)"}

        result = handle_request(_post(api_gateway_event, body), settings)

        assert result["statusCode"] == 400

    def test_creates_session_with_defaults(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        session = MagicMock()
        session.url = "https://checkout.stripe.com/c/pay/cs_test_1"

        with patch("stripe.checkout.Session.create", return_value=session) as mock_create:
            result = handle_request(_post(api_gateway_event, VALID_BODY), settings)

        assert result["statusCode"] == 200
        assert json.loads(result["body"]) == {"url": "https://checkout.stripe.com/c/pay/cs_test_1"}
        assert result["headers"]["Access-Control-Allow-Origin"] == "*"

        kwargs = mock_create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["mode"] == "subscription"
        assert kwargs["payment_method_types"] == ["card"]
        assert kwargs["line_items"] == [{"price": "price_premium", "quantity": 1}]
        assert kwargs["customer_email"] == "reader@example.com"
        assert kwargs["client_reference_id"] == "user_123"
        assert kwargs["metadata"] == {"user_id": "user_123"}
        assert kwargs["success_url"] == DEFAULT_SUCCESS_URL
        assert kwargs["cancel_url"] == DEFAULT_CANCEL_URL

    def test_uses_caller_redirect_urls(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        body = {
            **VALID_BODY,
            "successUrl": "https://mystoryrealm.com/thanks",
            "cancelUrl": "https://mystoryrealm.com/pricing",
        }

        with patch("stripe.checkout.Session.create", return_value=MagicMock(url="u")) as mock_create:
            handle_request(_post(api_gateway_event, body), settings)

        kwargs = mock_create.call_args.kwargs
        assert kwargs["success_url"] == "https://mystoryrealm.com/thanks"
        assert kwargs["cancel_url"] == "https://mystoryrealm.com/pricing"

    def test_stripe_rejection_returns_400_with_message(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        error = stripe.InvalidRequestError("No such price: 'price_premium'", param="line_items[0][price]")

        with patch("stripe.checkout.Session.create", side_effect=error):
            result = handle_request(_post(api_gateway_event, VALID_BODY), settings)

        assert result["statusCode"] == 400
        body = json.loads(result["body"])
        assert body["error"]["code"] == "checkout_rejected"
        assert "No such price" in body["error"]["message"]

    def test_stripe_outage_returns_500(self, api_gateway_event, settings):
        from api.create_checkout import handle_request

        with patch("stripe.checkout.Session.create", side_effect=stripe.APIConnectionError("down")):
            result = handle_request(_post(api_gateway_event, VALID_BODY), settings)

        assert result["statusCode"] == 500
        assert json.loads(result["body"])["error"]["code"] == "stripe_error"

    def test_missing_stripe_key_returns_500(self, api_gateway_event):
        from api.create_checkout import handle_request

        with patch("stripe.checkout.Session.create") as mock_create:
            result = handle_request(_post(api_gateway_event, VALID_BODY), Settings())

        assert result["statusCode"] == 500
        assert json.loads(result["body"])["error"]["code"] == "not_configured"
        mock_create.assert_not_called()
