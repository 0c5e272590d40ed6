"""
Per-request read/decide/write sequence for a user record.

    FETCHED -> RECONCILED -> PERSISTED

``fetch`` reads (or lazily creates) the record, ``reconcile`` applies the
daily rollover, ``update`` stages gameplay changes on top, and ``persist``
writes everything staged in one patch. Calling a step out of order is a
programming error and raises RuntimeError.
"""

import enum
import logging
from typing import Any, Optional

from shared.daily_state import new_user_record, reconcile
from shared.errors import DuplicateUserError
from shared.store import UserStore
from shared.types import UserRecord

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    NEW = "new"
    FETCHED = "fetched"
    RECONCILED = "reconciled"
    PERSISTED = "persisted"


class UserState:
    """One user's record for the lifetime of a single request."""

    def __init__(self, store: UserStore, user_id: str, today: str):
        self.store = store
        self.user_id = user_id
        self.today = today
        self.phase = Phase.NEW
        self.record: Optional[UserRecord] = None
        self.created = False
        self.pending: dict[str, Any] = {}

    @classmethod
    def load(cls, store: UserStore, user_id: str, today: str) -> "UserState":
        """Fetch and reconcile in one go."""
        state = cls(store, user_id, today)
        state.fetch()
        state.reconcile()
        return state

    def _expect(self, *phases: Phase) -> None:
        if self.phase not in phases:
            raise RuntimeError(
                f"UserState for {self.user_id} is {self.phase.value}, "
                f"expected {' or '.join(p.value for p in phases)}"
            )

    def fetch(self) -> UserRecord:
        """Read the record, inserting defaults on first access."""
        self._expect(Phase.NEW)
        record = self.store.get_user(self.user_id)
        if record is None:
            record = self._create()

        self.record = record
        self.phase = Phase.FETCHED
        return record

    def _create(self) -> UserRecord:
        record = new_user_record(self.user_id, self.today)
        try:
            self.store.insert_user(record)
        except DuplicateUserError:
            # A concurrent first request for the same user inserted first
            existing = self.store.get_user(self.user_id)
            if existing is None:
                raise
            logger.info(f"User record for {self.user_id} created concurrently, using it")
            return existing

        self.created = True
        logger.info(f"Created user record for {self.user_id}")
        return record

    def reconcile(self) -> UserRecord:
        """Apply the daily rollover and stage its patch."""
        self._expect(Phase.FETCHED)
        self.record, patch = reconcile(self.record, self.today)
        if patch:
            logger.info(f"Daily reset for {self.user_id} ({self.today})")
            self.pending.update(patch)
        self.phase = Phase.RECONCILED
        return self.record

    def update(self, changes: dict[str, Any]) -> UserRecord:
        """Stage field changes on the reconciled record."""
        self._expect(Phase.RECONCILED)
        self.record = {**self.record, **changes}
        self.pending.update(changes)
        return self.record

    def persist(self) -> Optional[dict[str, Any]]:
        """Write staged changes, if any. Returns the patch written."""
        self._expect(Phase.RECONCILED)
        patch = dict(self.pending) if self.pending else None
        if patch:
            self.store.patch_user(self.user_id, patch)
            self.pending.clear()
        self.phase = Phase.PERSISTED
        return patch
