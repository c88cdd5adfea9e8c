"""
Room registry: the routing table from user id to live delivery sinks.

A room is addressed by user id. Under the single-active-connection policy a
room holds at most one sink; joining a room displaces whatever sink was there
and hands it back to the caller so it can be shut down.

`join` and `leave` never await, so they are atomic with respect to other
tasks on the event loop.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from messenger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DeliverySink(ABC):
    """Something events can be pushed into (normally a ConnectionSession)."""

    @abstractmethod
    async def send_event(self, event: str, data: dict[str, Any]) -> None:
        """Push one event; must not raise when the channel is already gone."""

    @abstractmethod
    async def terminate(self, reason: str) -> None:
        """Close the underlying channel."""


class RoomRegistry:
    def __init__(self):
        self._rooms: dict[str, set[DeliverySink]] = {}

    def join(self, user_id: str, sink: DeliverySink) -> list[DeliverySink]:
        """Make `sink` the only member of the user's room; returns displaced sinks."""
        displaced = [s for s in self._rooms.get(user_id, ()) if s is not sink]
        self._rooms[user_id] = {sink}
        return displaced

    def leave(self, user_id: str, sink: DeliverySink) -> None:
        members = self._rooms.get(user_id)
        if not members:
            return
        members.discard(sink)
        if not members:
            del self._rooms[user_id]

    def sinks_for(self, user_id: str) -> list[DeliverySink]:
        return list(self._rooms.get(user_id, ()))

    def has_sink(self, user_id: str) -> bool:
        return bool(self._rooms.get(user_id))

    async def emit(self, user_id: str, event: str, data: dict[str, Any]) -> int:
        """Push an event into one user's room. Returns the number of sinks reached."""
        sinks = self.sinks_for(user_id)
        await asyncio.gather(*(self._deliver(sink, event, data) for sink in sinks))
        return len(sinks)

    async def broadcast_except(self, user_id: str, event: str, data: dict[str, Any]) -> int:
        """Push an event into every room except the given user's."""
        sinks = [
            sink
            for room_user, members in list(self._rooms.items())
            if room_user != user_id
            for sink in list(members)
        ]
        await asyncio.gather(*(self._deliver(sink, event, data) for sink in sinks))
        return len(sinks)

    async def _deliver(self, sink: DeliverySink, event: str, data: dict[str, Any]) -> None:
        try:
            await sink.send_event(event, data)
        except Exception as e:
            logger.warning("Dropping event for failed sink", realtime_event=event, error=str(e))

    def __len__(self) -> int:
        return len(self._rooms)
