"""
Process-wide wiring of the realtime engine.

One hub per process owns the presence table, the room registry, the
disconnect debouncer and the delivery router. Presence lives only here, so
the service must run as a single process.
"""

from typing import Any

from fastapi import WebSocket

from messenger.config import settings
from messenger.infrastructure.observability.logging import get_logger
from messenger.realtime.debouncer import DisconnectDebouncer
from messenger.realtime.presence import PresenceTable
from messenger.realtime.rooms import RoomRegistry
from messenger.realtime.router import DeliveryRouter
from messenger.realtime.session import ConnectionSession
from messenger.repositories.contact_repository import ContactStore, PostgresContactStore
from messenger.repositories.message_repository import MessageStore, PostgresMessageStore

logger = get_logger(__name__)


class RealtimeHub:
    def __init__(
        self,
        message_store: MessageStore,
        contact_store: ContactStore,
        offline_delay: float = 5.0,
    ):
        self.message_store = message_store
        self.contact_store = contact_store
        self.presence = PresenceTable()
        self.rooms = RoomRegistry()
        self.debouncer = DisconnectDebouncer(self.presence, self.rooms, delay=offline_delay)
        self.router = DeliveryRouter(self.presence, self.rooms, message_store, contact_store)

    def open_session(self, websocket: WebSocket) -> ConnectionSession:
        return ConnectionSession(websocket, self)

    async def stats(self) -> dict[str, Any]:
        return {
            "known_users": len(self.presence),
            "online_users": await self.presence.online_count(),
            "rooms": len(self.rooms),
            "pending_offline_broadcasts": self.debouncer.pending_count(),
        }

    async def shutdown(self) -> None:
        await self.debouncer.shutdown()
        logger.info("Realtime hub stopped")


realtime_hub = RealtimeHub(
    PostgresMessageStore(),
    PostgresContactStore(),
    offline_delay=settings.OFFLINE_BROADCAST_DELAY_SECONDS,
)


def get_hub() -> RealtimeHub:
    """FastAPI dependency returning the process hub (overridden in tests)."""
    return realtime_hub
