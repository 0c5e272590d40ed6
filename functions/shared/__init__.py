# Shared utilities package
from .constants import MAX_SAVED_STORIES
from .daily_state import new_user_record, reconcile, utc_today
from .errors import APIError, InvalidArgumentError, InvalidRequestError, StoreError
from .response_utils import error_response, success_response
from .story_list import delete_story, insert_story
from .store import InMemoryUserStore, SupabaseUserStore, UserStore

__all__ = [
    "MAX_SAVED_STORIES",
    "reconcile",
    "new_user_record",
    "utc_today",
    "insert_story",
    "delete_story",
    "UserStore",
    "SupabaseUserStore",
    "InMemoryUserStore",
    "error_response",
    "success_response",
    "APIError",
    "InvalidArgumentError",
    "InvalidRequestError",
    "StoreError",
]
