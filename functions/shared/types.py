"""
Shared Type Definitions for Lambda Handlers.

Provides TypedDict definitions for API Gateway events, responses and the
user record kept in Supabase.
"""

from typing import Any, Optional, TypedDict


class APIGatewayEvent(TypedDict, total=False):
    """API Gateway proxy event structure."""

    httpMethod: str
    headers: dict[str, str]
    pathParameters: Optional[dict[str, str]]
    queryStringParameters: Optional[dict[str, str]]
    body: Optional[str]
    requestContext: dict[str, Any]
    resource: str
    path: str
    isBase64Encoded: bool


class LambdaResponse(TypedDict):
    """Standard Lambda response structure."""

    statusCode: int
    headers: dict[str, str]
    body: str


class UserRecord(TypedDict, total=False):
    """Per-user gameplay and subscription state (``user_data`` row)."""

    user_id: str
    is_premium: bool
    stories_today: int
    last_play_date: str
    chosen_realm: Optional[str]
    completed_today: bool
    saved_stories: list[dict[str, Any]]
    stripe_customer_id: Optional[str]
    stripe_subscription_id: Optional[str]


class DailyResetPatch(TypedDict):
    """Patch written when a stale record rolls over to a new day."""

    stories_today: int
    chosen_realm: Optional[str]
    completed_today: bool
    last_play_date: str
