"""
User Data Endpoint - GET/POST /api/user

GET returns the caller's record, creating it on first access and rolling
daily counters over when the UTC day has changed.

POST applies one gameplay action:
    {"action": "start_story", "data": {"realm": "...", "stories_today": 1}}
    {"action": "complete_story"}
    {"action": "save_story", "data": {"story": {...}}}
    {"action": "delete_story", "data": {"index": 0}}

Authenticated with a Supabase access token (Authorization: Bearer ...).
"""

import logging
from typing import Any, Callable, Optional

from shared.config import Settings, load_settings
from shared.daily_state import utc_today
from shared.errors import APIError, InvalidRequestError, StoreError, UnauthorizedError
from shared.identity import SupabaseIdentityClient
from shared.logging_utils import bind, logged_handler
from shared.request_utils import get_bearer_token, get_header, get_method, parse_json_body
from shared.response_utils import (
    api_error_response,
    error_response,
    get_cors_headers,
    options_response,
    success_response,
)
from shared.store import SupabaseUserStore, UserStore
from shared.story_list import delete_story, insert_story
from shared.types import APIGatewayEvent, LambdaResponse
from shared.user_state import UserState

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ALLOWED_METHODS = "GET, POST, OPTIONS"

_settings: Optional[Settings] = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


# ===========================================
# Action parsing (no external calls)
# ===========================================


def _non_negative_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidRequestError(f"'{field}' must be a non-negative integer")
    return value


def _parse_start_story(data: dict) -> dict:
    realm = data.get("realm")
    if not isinstance(realm, str) or not realm.strip():
        raise InvalidRequestError("'realm' is required")

    stories_today = data.get("stories_today")
    if stories_today is not None:
        stories_today = _non_negative_int(stories_today, "stories_today")

    return {"realm": realm, "stories_today": stories_today}


def _parse_complete_story(data: dict) -> dict:
    return {}


def _parse_save_story(data: dict) -> dict:
    story = data.get("story")
    if not isinstance(story, dict):
        raise InvalidRequestError("'story' must be an object")
    return {"story": story}


def _parse_delete_story(data: dict) -> dict:
    index = data.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidRequestError("'index' must be an integer")
    return {"index": index}


# ===========================================
# Action application (on a reconciled record)
# ===========================================


def _apply_start_story(state: UserState, args: dict) -> None:
    stories_today = args["stories_today"]
    if stories_today is None:
        stories_today = (state.record.get("stories_today") or 0) + 1
    state.update({"chosen_realm": args["realm"], "stories_today": stories_today})


def _apply_complete_story(state: UserState, args: dict) -> None:
    state.update({"completed_today": True})


def _apply_save_story(state: UserState, args: dict) -> None:
    stories = state.record.get("saved_stories") or []
    state.update({"saved_stories": insert_story(stories, args["story"])})


def _apply_delete_story(state: UserState, args: dict) -> None:
    stories = state.record.get("saved_stories") or []
    state.update({"saved_stories": delete_story(stories, args["index"])})


ACTIONS: dict[str, tuple[Callable[[dict], dict], Callable[[UserState, dict], None]]] = {
    "start_story": (_parse_start_story, _apply_start_story),
    "complete_story": (_parse_complete_story, _apply_complete_story),
    "save_story": (_parse_save_story, _apply_save_story),
    "delete_story": (_parse_delete_story, _apply_delete_story),
}


def _parse_action(event: dict) -> tuple[str, dict]:
    """Validate a POST body and return (action, parsed args)."""
    body = parse_json_body(event)
    action = body.get("action")
    if action not in ACTIONS:
        raise APIError("invalid_action", "Invalid action", status_code=400)

    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise InvalidRequestError("'data' must be an object")

    parse, _ = ACTIONS[action]
    return action, parse(data)


# ===========================================
# Handler
# ===========================================


def handle_request(
    event: APIGatewayEvent,
    settings: Settings,
    store: Optional[UserStore] = None,
    identity: Optional[SupabaseIdentityClient] = None,
    today: Optional[str] = None,
) -> LambdaResponse:
    """Route one request. store, identity and today are injectable for tests."""
    method = get_method(event)
    cors = get_cors_headers(get_header(event, "Origin"), settings.allowed_origins, ALLOWED_METHODS)

    if method == "OPTIONS":
        return options_response(cors)

    if method not in ("GET", "POST"):
        return error_response(405, "method_not_allowed", "Method not allowed", headers=cors)

    user_id = None
    action = None
    try:
        token = get_bearer_token(event)
        if not token:
            raise UnauthorizedError()

        args = None
        if method == "POST":
            action, args = _parse_action(event)
            bind(action=action)

        identity = identity or SupabaseIdentityClient.from_settings(settings)
        user_id = identity.get_user_id(token)
        if not user_id:
            raise UnauthorizedError("Invalid token", code="invalid_token")
        bind(user_id=user_id)

        store = store or SupabaseUserStore.from_settings(settings)
        state = UserState.load(store, user_id, today or utc_today())

        if method == "GET":
            state.persist()
            return success_response(state.record, headers=cors)

        _, apply = ACTIONS[action]
        apply(state, args)
        state.persist()
        logger.info(f"Applied {action} for user {user_id}")
        return success_response({"success": True}, headers=cors)

    except StoreError as e:
        logger.error(f"Store failure for user {user_id}: {e}")
        return api_error_response(e, headers=cors)
    except APIError as e:
        if e.status_code >= 500:
            logger.error(f"Request failed: {e.code}")
        return api_error_response(e, headers=cors)
    except Exception as e:
        logger.error(f"Unexpected error handling {method} {action or ''}: {e}", exc_info=True)
        return error_response(500, "internal_error", "Internal server error", headers=cors)


@logged_handler("/api/user")
def handler(event, context):
    """Lambda handler for GET/POST/OPTIONS /api/user."""
    return handle_request(event, _get_settings())
