"""Durable expiry map for one restriction category.

Entries live in memory and every mutation is written through to SQLite before
the call returns. Scanners iterate a snapshot, never the live mapping.
"""

import datetime
import logging
import math
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from core.errors import AlreadyRestricted, MalformedPersistedEntry, RestrictionNotFound
from models.restrictions import RestrictionCategory, RestrictionEntry, RestrictionKey, RestrictionState
from services.database import Database

logger = logging.getLogger(__name__)


class RestrictionStore:
    def __init__(
        self,
        db: Database,
        category: RestrictionCategory,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self.category = category
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[RestrictionKey, int] = {}

    def load(self) -> int:
        rows = self._db.query_all(
            "SELECT record_key, expires_at FROM restrictions WHERE category = ?",
            (self.category.value,),
        )
        loaded: Dict[RestrictionKey, int] = {}
        discarded: List[object] = []
        rewritten: List[RestrictionKey] = []
        for row in rows:
            record_key = row["record_key"]
            try:
                key, expires_at = self._parse_row(record_key, row["expires_at"])
            except MalformedPersistedEntry as exc:
                logger.warning("Dropping %s record: %s", self.category.value, exc)
                discarded.append(record_key)
                continue
            if key.encode() != record_key:
                discarded.append(record_key)
                rewritten.append(key)
            loaded[key] = expires_at
        with self._lock:
            # Rows that did not load would otherwise shadow a later add of the same key.
            for record_key in discarded:
                self._db.execute(
                    "DELETE FROM restrictions WHERE category = ? AND record_key = ?",
                    (self.category.value, record_key),
                )
            for key in rewritten:
                self._write(key, loaded[key])
            self._entries = loaded
        logger.info("Loaded %d %s restriction(s)", len(loaded), self.category.value)
        return len(loaded)

    def _write(self, key: RestrictionKey, expires_at: int) -> None:
        self._db.execute(
            "INSERT OR REPLACE INTO restrictions (category, record_key, expires_at) VALUES (?, ?, ?)",
            (self.category.value, key.encode(), str(expires_at)),
        )

    @staticmethod
    def _parse_row(record_key: object, raw_expiry: object) -> Tuple[RestrictionKey, int]:
        if not isinstance(record_key, str):
            raise MalformedPersistedEntry(record_key, raw_expiry)
        try:
            key = RestrictionKey.parse(record_key)
        except MalformedPersistedEntry:
            raise MalformedPersistedEntry(record_key, raw_expiry) from None
        try:
            expires_at = int(str(raw_expiry).strip())
        except ValueError:
            raise MalformedPersistedEntry(record_key, raw_expiry) from None
        return key, expires_at

    def add(self, key: RestrictionKey, duration: datetime.timedelta) -> RestrictionEntry:
        seconds = duration.total_seconds()
        if seconds <= 0:
            raise ValueError("Restriction duration must be positive")
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                raise AlreadyRestricted(key, existing)
            expires_at = int(self._clock()) + math.ceil(seconds)
            self._write(key, expires_at)
            self._entries[key] = expires_at
        return RestrictionEntry(key=key, expires_at=expires_at)

    def remove(self, key: RestrictionKey, expected_expires_at: Optional[int] = None) -> bool:
        """Delete the entry for ``key``.

        With ``expected_expires_at`` the entry is only deleted while its stored
        expiry still matches, so a caller holding an old snapshot cannot remove
        a restriction that was re-created in the meantime.
        """
        with self._lock:
            current = self._entries.get(key)
            if current is None:
                return False
            if expected_expires_at is not None and current != expected_expires_at:
                return False
            self._db.execute(
                "DELETE FROM restrictions WHERE category = ? AND record_key = ?",
                (self.category.value, key.encode()),
            )
            del self._entries[key]
            return True

    def has(self, key: RestrictionKey) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: RestrictionKey) -> int:
        with self._lock:
            expires_at = self._entries.get(key)
        if expires_at is None:
            raise RestrictionNotFound(key)
        return expires_at

    def entry(self, key: RestrictionKey) -> RestrictionEntry:
        return RestrictionEntry(key=key, expires_at=self.get(key))

    def state(self, key: RestrictionKey, now: Optional[float] = None) -> RestrictionState:
        with self._lock:
            expires_at = self._entries.get(key)
        if expires_at is None:
            return RestrictionState.UNRESTRICTED
        if now is None:
            now = self._clock()
        if expires_at <= now:
            return RestrictionState.EXPIRED
        return RestrictionState.ACTIVE

    def snapshot(self) -> Tuple[RestrictionEntry, ...]:
        with self._lock:
            items = list(self._entries.items())
        return tuple(RestrictionEntry(key=key, expires_at=expires_at) for key, expires_at in items)

    def entries_for_scope(self, scope_id: int) -> Tuple[RestrictionEntry, ...]:
        return tuple(entry for entry in self.snapshot() if entry.scope_id == scope_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
