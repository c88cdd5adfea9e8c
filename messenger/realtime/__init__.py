"""
Realtime presence and message-delivery engine.
"""

from messenger.realtime.debouncer import DisconnectDebouncer
from messenger.realtime.errors import DeliveryError, PersistenceFailure, ValidationFailure
from messenger.realtime.hub import RealtimeHub, get_hub, realtime_hub
from messenger.realtime.presence import PresenceSnapshot, PresenceTable
from messenger.realtime.rooms import DeliverySink, RoomRegistry
from messenger.realtime.router import DeliveryRouter
from messenger.realtime.session import ConnectionSession, SessionState

__all__ = [
    "ConnectionSession",
    "DeliveryError",
    "DeliveryRouter",
    "DeliverySink",
    "DisconnectDebouncer",
    "PersistenceFailure",
    "PresenceSnapshot",
    "PresenceTable",
    "RealtimeHub",
    "RoomRegistry",
    "SessionState",
    "ValidationFailure",
    "get_hub",
    "realtime_hub",
]
