"""
In-memory presence table.

The single authoritative answer to "is this user reachable right now" for
this process. Every operation takes the table lock for the duration of one
read-modify-write and never awaits anything else while holding it.

Entries are created on first authentication and never evicted; a user that
went offline keeps an entry with `connection=None` and its last-seen time.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class PresenceEntry:
    user_id: str
    connection: Any | None
    last_seen_at: datetime

    @property
    def is_online(self) -> bool:
        return self.connection is not None


@dataclass(frozen=True, slots=True)
class PresenceSnapshot:
    """Point-in-time copy of one entry, safe to use after the lock is released."""

    user_id: str
    is_online: bool
    last_seen_at: datetime


class PresenceTable:
    def __init__(self):
        self._entries: dict[str, PresenceEntry] = {}
        self._lock = asyncio.Lock()

    async def set_online(self, user_id: str, connection: Any) -> None:
        """Bind `connection` as the user's live handle (last writer wins)."""
        async with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                self._entries[user_id] = PresenceEntry(user_id, connection, utcnow())
            else:
                entry.connection = connection
                entry.last_seen_at = utcnow()

    async def set_offline(
        self, user_id: str, last_seen_at: datetime, connection: Any | None = None
    ) -> bool:
        """Mark the user offline at `last_seen_at`.

        When `connection` is given the entry is only changed if that handle is
        still the current one, so a superseded session closing late cannot
        take a newer session offline. Returns True if the entry changed.
        """
        async with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                if connection is not None:
                    return False
                self._entries[user_id] = PresenceEntry(user_id, None, last_seen_at)
                return True

            if connection is not None and entry.connection is not connection:
                return False

            entry.connection = None
            entry.last_seen_at = last_seen_at
            return True

    async def is_online(self, user_id: str) -> bool:
        async with self._lock:
            entry = self._entries.get(user_id)
            return entry is not None and entry.is_online

    async def last_seen(self, user_id: str) -> datetime | None:
        async with self._lock:
            entry = self._entries.get(user_id)
            return entry.last_seen_at if entry else None

    async def snapshot_all_except(self, user_id: str) -> list[PresenceSnapshot]:
        async with self._lock:
            return [
                PresenceSnapshot(entry.user_id, entry.is_online, entry.last_seen_at)
                for entry in self._entries.values()
                if entry.user_id != user_id
            ]

    async def online_count(self) -> int:
        async with self._lock:
            return sum(1 for entry in self._entries.values() if entry.is_online)

    def __len__(self) -> int:
        return len(self._entries)
