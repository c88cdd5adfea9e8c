"""
Connection session: one live WebSocket bound to one user.

Lifecycle:
    CONNECTING     socket open, no identity yet
    AUTHENTICATED  token verified, user bound, handshake accepted
    ACTIVE         registered in presence and rooms, intents accepted
    CLOSED         terminal; pushes and intents are dropped

Authentication happens once, synchronously, before the handshake is
accepted. A bad token closes the socket with 1008 and nothing else happens.
Intents from one session are handled one at a time in arrival order, which
is what gives per-pair message ordering.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from messenger.auth.verify import InvalidCredential, verify_token
from messenger.infrastructure.observability.logging import get_logger, log_realtime_event
from messenger.models.api.realtime_events import (
    ACCEPT_FRIEND_REQUEST,
    ERROR,
    GET_UNREAD_COUNTS,
    MARK_MESSAGES_AS_READ,
    SEND_FRIEND_REQUEST,
    SEND_MESSAGE,
    UNREAD_COUNTS,
    USER_STATUS,
    AcceptFriendRequestIntent,
    Frame,
    MarkReadIntent,
    SendFriendRequestIntent,
    SendMessageIntent,
    build_frame,
    error_payload,
    user_status_payload,
)
from messenger.realtime.errors import DeliveryError
from messenger.realtime.presence import utcnow
from messenger.realtime.rooms import DeliverySink

if TYPE_CHECKING:
    from messenger.realtime.hub import RealtimeHub

logger = get_logger(__name__)

SUPERSEDED_CLOSE_CODE = 4000


class SessionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


def _validation_message(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return "Invalid payload"
    first = errors[0]
    message = str(first.get("msg", "Invalid payload")).removeprefix("Value error, ")
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {message}" if location else message


class ConnectionSession(DeliverySink):
    def __init__(self, websocket: WebSocket, hub: "RealtimeHub"):
        self.websocket = websocket
        self.hub = hub
        self.state = SessionState.CONNECTING
        self.user_id: str | None = None
        self._send_lock = asyncio.Lock()
        self._handlers = {
            SEND_MESSAGE: self._on_send_message,
            MARK_MESSAGES_AS_READ: self._on_mark_read,
            GET_UNREAD_COUNTS: self._on_get_unread_counts,
            SEND_FRIEND_REQUEST: self._on_send_friend_request,
            ACCEPT_FRIEND_REQUEST: self._on_accept_friend_request,
        }

    async def run(self, token: str | None) -> None:
        """Drive the whole connection: authenticate, activate, serve, clean up."""
        if not await self.authenticate(token):
            return

        try:
            await self.activate()
            await self._receive_loop()
        finally:
            await self.close()

    async def authenticate(self, token: str | None) -> bool:
        try:
            user_id = verify_token(token)
        except InvalidCredential as e:
            logger.info("Realtime connection rejected", error=str(e))
            self.state = SessionState.CLOSED
            await self.websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return False

        self.user_id = user_id
        self.state = SessionState.AUTHENTICATED
        await self.websocket.accept()
        return True

    async def activate(self) -> None:
        """Register presence, announce the user and hydrate this client."""
        hub = self.hub
        user_id = self.user_id

        displaced = hub.rooms.join(user_id, self)
        await hub.presence.set_online(user_id, self)
        hub.debouncer.cancel(user_id)

        for stale in displaced:
            logger.info("Previous session superseded", user_id=user_id)
            await stale.terminate("superseded by a newer connection")

        await hub.rooms.broadcast_except(user_id, USER_STATUS, user_status_payload(user_id, True))

        for entry in await hub.presence.snapshot_all_except(user_id):
            await self.send_event(
                USER_STATUS,
                user_status_payload(entry.user_id, entry.is_online, entry.last_seen_at),
            )

        self.state = SessionState.ACTIVE
        logger.info("User joined", user_id=user_id)

    async def _receive_loop(self) -> None:
        while self.state is SessionState.ACTIVE:
            try:
                message = await self.websocket.receive()
            except WebSocketDisconnect:
                break
            except RuntimeError:
                # Socket was closed from our side by terminate()
                if self.state is SessionState.CLOSED:
                    break
                raise

            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                # Binary frames carry no JSON envelope
                await self.send_event(ERROR, error_payload("Malformed frame"))
                continue
            await self.handle_frame(text)

    async def handle_frame(self, raw: str) -> None:
        if self.state is not SessionState.ACTIVE:
            return

        try:
            frame = Frame.model_validate_json(raw)
        except ValidationError:
            await self.send_event(ERROR, error_payload("Malformed frame"))
            return

        log_realtime_event(frame.event, self.user_id, "inbound")

        handler = self._handlers.get(frame.event)
        if handler is None:
            await self.send_event(ERROR, error_payload(f"Unknown event: {frame.event}"))
            return

        try:
            await handler(frame.data)
        except ValidationError as e:
            await self.send_event(ERROR, error_payload(_validation_message(e)))
        except DeliveryError as e:
            await self.send_event(ERROR, error_payload(e.message))
        except Exception:
            logger.exception(
                "Unhandled error in realtime intent",
                user_id=self.user_id,
                realtime_event=frame.event,
            )
            await self.send_event(ERROR, error_payload("Internal server error"))

    async def _on_send_message(self, data: dict[str, Any]) -> None:
        intent = SendMessageIntent.model_validate(data)
        await self.hub.router.send_message(self.user_id, intent)

    async def _on_mark_read(self, data: dict[str, Any]) -> None:
        intent = MarkReadIntent.model_validate(data)
        await self.hub.router.mark_read(self.user_id, intent.contact_id)

    async def _on_get_unread_counts(self, data: dict[str, Any]) -> None:
        counts = await self.hub.router.get_unread_counts(self.user_id)
        await self.send_event(
            UNREAD_COUNTS, {"counts": [count.model_dump(by_alias=True) for count in counts]}
        )

    async def _on_send_friend_request(self, data: dict[str, Any]) -> None:
        intent = SendFriendRequestIntent.model_validate(data)
        await self.hub.router.send_friend_request(self.user_id, intent.receiver_id)

    async def _on_accept_friend_request(self, data: dict[str, Any]) -> None:
        intent = AcceptFriendRequestIntent.model_validate(data)
        await self.hub.router.accept_friend_request(self.user_id, intent.request_id)

    async def send_event(self, event: str, data: dict[str, Any]) -> None:
        if self.state is SessionState.CLOSED:
            return

        async with self._send_lock:
            try:
                await self.websocket.send_json(build_frame(event, data))
            except Exception as e:
                # Peer vanished mid-send; the receive loop will see the disconnect
                logger.debug(
                    "Push dropped", user_id=self.user_id, realtime_event=event, error=str(e)
                )
                return

        log_realtime_event(event, self.user_id, "outbound")

    async def terminate(self, reason: str) -> None:
        if self.state is SessionState.CLOSED:
            return

        await self.close()
        try:
            await self.websocket.close(code=SUPERSEDED_CLOSE_CODE, reason=reason)
        except Exception as e:
            logger.debug("Socket already closed", user_id=self.user_id, error=str(e))

    async def close(self) -> None:
        """Release presence and room membership. Idempotent."""
        if self.state is SessionState.CLOSED:
            return

        previous = self.state
        self.state = SessionState.CLOSED
        if previous is SessionState.CONNECTING:
            return

        hub = self.hub
        hub.rooms.leave(self.user_id, self)

        last_seen_at = utcnow()
        if await hub.presence.set_offline(self.user_id, last_seen_at, self):
            hub.debouncer.schedule_offline_broadcast(self.user_id, last_seen_at)

        logger.info("User disconnected", user_id=self.user_id, previous_state=previous.value)
