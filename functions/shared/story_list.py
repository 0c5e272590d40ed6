"""Saved story history, newest first and capped."""

from typing import Any

from shared.constants import MAX_SAVED_STORIES
from shared.errors import InvalidArgumentError


def insert_story(stories: list, story: Any, limit: int = MAX_SAVED_STORIES) -> list:
    """Return a new list with story at the front and at most limit entries."""
    return [story, *stories][:limit]


def delete_story(stories: list, index: int) -> list:
    """Return a new list without the entry at index.

    Raises:
        InvalidArgumentError: If index is not a position in stories. Negative
            indices are rejected rather than counted from the end.
    """
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidArgumentError("Story index must be an integer")
    if index < 0 or index >= len(stories):
        raise InvalidArgumentError(
            f"Story index {index} is out of range",
            details={"index": index, "count": len(stories)},
        )
    return stories[:index] + stories[index + 1:]
