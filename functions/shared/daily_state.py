"""
Daily rollover for user records.

A record belongs to the UTC day in ``last_play_date``. The first time it is
seen on a later day its daily counters are cleared; saved stories and
premium status carry over.
"""

from datetime import datetime, timezone
from typing import Optional

from shared.types import DailyResetPatch, UserRecord


def utc_today(now: Optional[datetime] = None) -> str:
    """Current UTC calendar date as YYYY-MM-DD."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%d")


def new_user_record(user_id: str, today: str) -> UserRecord:
    """Defaults for a user seen for the first time."""
    return {
        "user_id": user_id,
        "is_premium": False,
        "stories_today": 0,
        "last_play_date": today,
        "chosen_realm": None,
        "completed_today": False,
        "saved_stories": [],
    }


def reconcile(record: UserRecord, today: str) -> tuple[UserRecord, Optional[DailyResetPatch]]:
    """
    Reset daily counters if the record is from an earlier day.

    Args:
        record: Record as read from the store (not modified)
        today: Canonical UTC date string, see utc_today()

    Returns:
        (record, None) when the record is current, otherwise a reset copy
        of the record and the patch that makes the stored row match it.
    """
    if record.get("last_play_date") == today:
        return record, None

    patch: DailyResetPatch = {
        "stories_today": 0,
        "chosen_realm": None,
        "completed_today": False,
        "last_play_date": today,
    }
    updated = dict(record)
    updated.update(patch)
    return updated, patch
