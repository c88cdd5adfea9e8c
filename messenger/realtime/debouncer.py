"""
Disconnect debouncer.

Delays the "user went offline" broadcast so a page reload or a network blip
does not make peers see the user flicker offline and back. One pending timer
per user: a new disconnect replaces the pending timer, a reconnect cancels it.
"""

import asyncio
from datetime import datetime

from messenger.infrastructure.observability.logging import get_logger
from messenger.models.api.realtime_events import USER_STATUS, user_status_payload
from messenger.realtime.presence import PresenceTable
from messenger.realtime.rooms import RoomRegistry

logger = get_logger(__name__)


class DisconnectDebouncer:
    def __init__(self, presence: PresenceTable, rooms: RoomRegistry, delay: float = 5.0):
        self.presence = presence
        self.rooms = rooms
        self.delay = delay
        self._timers: dict[str, asyncio.Task] = {}

    def schedule_offline_broadcast(
        self, user_id: str, last_seen_at: datetime, delay: float | None = None
    ) -> asyncio.Task:
        """Arm (or re-arm) the offline broadcast for `user_id`."""
        self.cancel(user_id)

        wait = self.delay if delay is None else delay
        task = asyncio.create_task(
            self._fire_after(user_id, last_seen_at, wait),
            name=f"offline-broadcast:{user_id}",
        )
        self._timers[user_id] = task

        logger.debug("Offline broadcast scheduled", user_id=user_id, delay_s=wait)
        return task

    def cancel(self, user_id: str) -> bool:
        """Drop the pending timer for `user_id`, if any. Returns True if one was cancelled."""
        task = self._timers.pop(user_id, None)
        if task is None or task.done():
            return False

        task.cancel()
        logger.debug("Offline broadcast cancelled by reconnect", user_id=user_id)
        return True

    def pending(self, user_id: str) -> bool:
        task = self._timers.get(user_id)
        return task is not None and not task.done()

    def pending_count(self) -> int:
        return sum(1 for task in self._timers.values() if not task.done())

    async def shutdown(self) -> None:
        """Cancel every pending timer (application shutdown)."""
        tasks = list(self._timers.values())
        self._timers.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Disconnect debouncer stopped", cancelled=len(tasks))

    async def _fire_after(self, user_id: str, last_seen_at: datetime, delay: float) -> None:
        await asyncio.sleep(delay)

        # From here on a reconnect can no longer cancel this timer
        if self._timers.get(user_id) is asyncio.current_task():
            del self._timers[user_id]

        try:
            if await self.presence.is_online(user_id):
                logger.debug("User back online before offline broadcast", user_id=user_id)
                return

            reached = await self.rooms.broadcast_except(
                user_id, USER_STATUS, user_status_payload(user_id, False, last_seen_at)
            )
            logger.info("User went offline", user_id=user_id, notified_sessions=reached)
        except Exception:
            logger.exception("Offline broadcast failed", user_id=user_id)
