"""
Message store.

Durable append-only record of direct messages with delivery/read flags.
`MessageStore` is the contract the delivery router and the REST routes depend
on; `PostgresMessageStore` is the production implementation backed by the
shared psycopg pool. Failures surface as `DatabaseError`.
"""

from abc import ABC, abstractmethod
from typing import Any

from messenger.db.helpers import execute_query, fetch_all, fetch_one, fetch_val
from messenger.infrastructure.observability.logging import get_logger
from messenger.models.domain.message_domain import Message

logger = get_logger(__name__)

_MESSAGE_COLUMNS = """
    id, sender_id, receiver_id, content, media_url, media_type, thumbnail_url,
    sent_at, is_delivered, is_read
"""


class MessageStore(ABC):
    """Abstract repository for `Message` records."""

    @abstractmethod
    async def create(self, message: Message) -> Message:
        """Persist a message and return it with its generated id and timestamp."""

    @abstractmethod
    async def find_by_pair(self, user_a: str, user_b: str, page: int, limit: int) -> list[Message]:
        """One page of the conversation between two users, oldest first within the page."""

    @abstractmethod
    async def count_by_pair(self, user_a: str, user_b: str) -> int:
        pass

    @abstractmethod
    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        """Flag every unread message sender -> receiver as read; returns rows affected."""

    @abstractmethod
    async def count_unread_grouped_by_sender(self, user_id: str) -> dict[str, int]:
        pass


def _row_to_message(row: dict[str, Any]) -> Message:
    return Message(
        id=str(row["id"]),
        sender_id=str(row["sender_id"]),
        receiver_id=str(row["receiver_id"]),
        content=row.get("content"),
        media_url=row.get("media_url"),
        media_type=row.get("media_type"),
        thumbnail_url=row.get("thumbnail_url"),
        timestamp=row.get("sent_at"),
        is_delivered=bool(row.get("is_delivered")),
        is_read=bool(row.get("is_read")),
    )


class PostgresMessageStore(MessageStore):
    """Message persistence on the `messages` table."""

    async def create(self, message: Message) -> Message:
        query = f"""
            INSERT INTO messages (
                sender_id, receiver_id, content, media_url, media_type,
                thumbnail_url, is_delivered, is_read
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_MESSAGE_COLUMNS}
        """
        params = (
            message.sender_id,
            message.receiver_id,
            message.content,
            message.media_url,
            message.media_type.value if message.media_type else None,
            message.thumbnail_url,
            message.is_delivered,
            message.is_read,
        )

        row = await fetch_one(query, params)
        stored = _row_to_message(row)

        logger.debug(
            "Message stored",
            message_id=stored.id,
            sender_id=stored.sender_id,
            receiver_id=stored.receiver_id,
        )
        return stored

    async def find_by_pair(self, user_a: str, user_b: str, page: int, limit: int) -> list[Message]:
        offset = (max(page, 1) - 1) * limit
        query = f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM messages
            WHERE (sender_id = %s AND receiver_id = %s)
               OR (sender_id = %s AND receiver_id = %s)
            ORDER BY sent_at DESC, id DESC
            LIMIT %s OFFSET %s
        """
        rows = await fetch_all(query, (user_a, user_b, user_b, user_a, limit, offset))

        # Paged newest first, returned oldest first for display
        return [_row_to_message(row) for row in reversed(rows)]

    async def count_by_pair(self, user_a: str, user_b: str) -> int:
        query = """
            SELECT COUNT(*)
            FROM messages
            WHERE (sender_id = %s AND receiver_id = %s)
               OR (sender_id = %s AND receiver_id = %s)
        """
        return int(await fetch_val(query, (user_a, user_b, user_b, user_a)) or 0)

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        query = """
            UPDATE messages
            SET is_read = true
            WHERE sender_id = %s
              AND receiver_id = %s
              AND is_read = false
        """
        return await execute_query(query, (sender_id, receiver_id))

    async def count_unread_grouped_by_sender(self, user_id: str) -> dict[str, int]:
        query = """
            SELECT sender_id, COUNT(*) AS unread
            FROM messages
            WHERE receiver_id = %s AND is_read = false
            GROUP BY sender_id
        """
        rows = await fetch_all(query, (user_id,))
        return {str(row["sender_id"]): int(row["unread"]) for row in rows}
