"""
Delivery router.

Turns validated intents into store writes and live pushes. The rule for every
operation is persist first, push second: nothing is pushed for a write that
did not succeed. Liveness is checked right before each push, never when the
intent arrived, because it can change while the write is pending.
"""

from messenger.db.helpers import DatabaseError
from messenger.infrastructure.observability.logging import get_logger
from messenger.models.api.realtime_events import (
    FRIEND_REQUEST_ACCEPTED,
    MESSAGE_SENT,
    MESSAGES_READ,
    NEW_FRIEND_REQUEST,
    NEW_MESSAGE,
    SendMessageIntent,
)
from messenger.models.domain.message_domain import Message, UnreadCount
from messenger.realtime.errors import PersistenceFailure, ValidationFailure
from messenger.realtime.presence import PresenceTable
from messenger.realtime.rooms import RoomRegistry
from messenger.repositories.contact_repository import ContactStore
from messenger.repositories.message_repository import MessageStore

logger = get_logger(__name__)


class DeliveryRouter:
    def __init__(
        self,
        presence: PresenceTable,
        rooms: RoomRegistry,
        message_store: MessageStore,
        contact_store: ContactStore,
    ):
        self.presence = presence
        self.rooms = rooms
        self.message_store = message_store
        self.contact_store = contact_store

    async def send_message(self, sender_id: str, intent: SendMessageIntent) -> Message:
        """Persist a message, push it to the receiver if online and ack the sender."""
        try:
            message = Message(
                sender_id=sender_id,
                receiver_id=intent.receiver_id,
                content=intent.content,
                media_url=intent.media_url,
                media_type=intent.media_type,
                thumbnail_url=intent.thumbnail_url,
                # Delivered means "stored"; see DESIGN.md
                is_delivered=True,
            )
        except ValueError as e:
            raise ValidationFailure(
                "Either message content or media is required", "send_message"
            ) from e

        try:
            stored = await self.message_store.create(message)
        except DatabaseError as e:
            logger.error(
                "Failed to persist message",
                sender_id=sender_id,
                receiver_id=intent.receiver_id,
                error=str(e),
            )
            raise PersistenceFailure("Failed to send message", "send_message") from e

        if await self.presence.is_online(stored.receiver_id):
            await self.rooms.emit(stored.receiver_id, NEW_MESSAGE, stored.to_event())
            pushed = True
        else:
            pushed = False

        await self.rooms.emit(
            sender_id, MESSAGE_SENT, {"messageId": stored.id, "isDelivered": stored.is_delivered}
        )

        logger.info(
            "Message sent",
            message_id=stored.id,
            sender_id=sender_id,
            receiver_id=stored.receiver_id,
            live_push=pushed,
        )
        return stored

    async def mark_read(self, reader_id: str, contact_id: str) -> int:
        """Mark everything contact -> reader as read and tell the contact."""
        try:
            updated = await self.message_store.mark_read(contact_id, reader_id)
        except DatabaseError as e:
            logger.error(
                "Failed to mark messages as read",
                reader_id=reader_id,
                contact_id=contact_id,
                error=str(e),
            )
            raise PersistenceFailure("Failed to mark messages as read", "mark_read") from e

        # Fire-and-forget: a contact who is offline simply misses the notice
        await self.rooms.emit(contact_id, MESSAGES_READ, {"by": reader_id})

        logger.info(
            "Messages marked as read", reader_id=reader_id, contact_id=contact_id, count=updated
        )
        return updated

    async def get_unread_counts(self, user_id: str) -> list[UnreadCount]:
        try:
            grouped = await self.message_store.count_unread_grouped_by_sender(user_id)
        except DatabaseError as e:
            logger.error("Failed to count unread messages", user_id=user_id, error=str(e))
            raise PersistenceFailure("Failed to get unread counts", "get_unread_counts") from e

        logger.debug("Unread counts computed", user_id=user_id, senders=len(grouped))
        return [UnreadCount(sender_id=sender, count=count) for sender, count in grouped.items()]

    async def send_friend_request(self, sender_id: str, receiver_id: str) -> bool:
        """Record sender -> receiver. Returns False when an edge already existed (no-op)."""
        if sender_id == receiver_id:
            raise ValidationFailure(
                "Cannot send a friend request to yourself", "send_friend_request"
            )

        try:
            if not await self.contact_store.user_exists(receiver_id):
                raise ValidationFailure("User not found", "send_friend_request")

            if await self.contact_store.are_contacts(receiver_id, sender_id):
                logger.debug(
                    "Friend request to existing contact ignored",
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                )
                return False

            # Insert is conflict-safe, so concurrent duplicates push at most once
            created = await self.contact_store.add_friend_request(sender_id, receiver_id)
        except DatabaseError as e:
            logger.error(
                "Failed to record friend request",
                sender_id=sender_id,
                receiver_id=receiver_id,
                error=str(e),
            )
            raise PersistenceFailure("Failed to send friend request", "send_friend_request") from e

        if not created:
            logger.debug(
                "Duplicate friend request ignored", sender_id=sender_id, receiver_id=receiver_id
            )
            return False

        if await self.presence.is_online(receiver_id):
            await self.rooms.emit(receiver_id, NEW_FRIEND_REQUEST, {"senderId": sender_id})

        logger.info("Friend request sent", sender_id=sender_id, receiver_id=receiver_id)
        return True

    async def accept_friend_request(self, user_id: str, request_id: str) -> None:
        """Accept the pending request request_id -> user_id and notify both parties."""
        try:
            accepted = await self.contact_store.accept_friend_request(user_id, request_id)
        except DatabaseError as e:
            logger.error(
                "Failed to accept friend request",
                user_id=user_id,
                request_id=request_id,
                error=str(e),
            )
            raise PersistenceFailure(
                "Failed to accept friend request", "accept_friend_request"
            ) from e

        if not accepted:
            raise ValidationFailure("No pending friend request", "accept_friend_request")

        await self.rooms.emit(request_id, FRIEND_REQUEST_ACCEPTED, {"userId": user_id})
        await self.rooms.emit(user_id, FRIEND_REQUEST_ACCEPTED, {"requestId": request_id})
