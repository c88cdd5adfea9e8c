"""
Contact store.

Friend requests are directional edges sender -> receiver kept in
`friend_requests`; accepted contacts are stored in `user_contacts` in both
directions. The `users` table belongs to the auth service and is only read.
"""

from abc import ABC, abstractmethod

import psycopg

from messenger.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one
from messenger.db.pool import get_db_transaction
from messenger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ContactStore(ABC):
    """Abstract repository for friend-request and contact edges."""

    @abstractmethod
    async def user_exists(self, user_id: str) -> bool:
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> dict | None:
        """Return `{"id", "username"}` for the user, or None when unknown."""

    @abstractmethod
    async def are_contacts(self, user_id: str, other_id: str) -> bool:
        pass

    @abstractmethod
    async def add_friend_request(self, sender_id: str, receiver_id: str) -> bool:
        """Record sender -> receiver; False when the edge already existed."""

    @abstractmethod
    async def accept_friend_request(self, user_id: str, requester_id: str) -> bool:
        """Atomically swap the pending edge requester -> user for symmetric contacts.

        Returns False when there was no pending edge to accept.
        """

    @abstractmethod
    async def list_friend_requests(self, user_id: str) -> list[dict]:
        pass

    @abstractmethod
    async def list_contacts(self, user_id: str) -> list[dict]:
        pass


class PostgresContactStore(ContactStore):
    """Edge persistence on `friend_requests` and `user_contacts`."""

    async def user_exists(self, user_id: str) -> bool:
        row = await fetch_one("SELECT 1 AS found FROM users WHERE id = %s", (user_id,))
        return row is not None

    async def get_user(self, user_id: str) -> dict | None:
        row = await fetch_one("SELECT id, username FROM users WHERE id = %s", (user_id,))
        if row is None:
            return None
        return {"id": str(row["id"]), "username": row.get("username")}

    async def are_contacts(self, user_id: str, other_id: str) -> bool:
        query = """
            SELECT 1 AS found
            FROM user_contacts
            WHERE user_id = %s AND contact_id = %s
        """
        return await fetch_one(query, (user_id, other_id)) is not None

    async def add_friend_request(self, sender_id: str, receiver_id: str) -> bool:
        query = """
            INSERT INTO friend_requests (sender_id, receiver_id)
            VALUES (%s, %s)
            ON CONFLICT (sender_id, receiver_id) DO NOTHING
        """
        inserted = await execute_query(query, (sender_id, receiver_id))
        return inserted > 0

    async def accept_friend_request(self, user_id: str, requester_id: str) -> bool:
        try:
            async with await get_db_transaction() as conn:
                removed = await execute_query(
                    "DELETE FROM friend_requests WHERE sender_id = %s AND receiver_id = %s",
                    (requester_id, user_id),
                    connection=conn,
                )
                if removed == 0:
                    return False

                await execute_query(
                    """
                    INSERT INTO user_contacts (user_id, contact_id)
                    VALUES (%s, %s), (%s, %s)
                    ON CONFLICT (user_id, contact_id) DO NOTHING
                    """,
                    (user_id, requester_id, requester_id, user_id),
                    connection=conn,
                )
        except psycopg.Error as e:
            logger.error(
                "Accept friend request transaction failed",
                user_id=user_id,
                requester_id=requester_id,
                error=str(e),
            )
            raise DatabaseError(
                f"Transaction failed: {e}", operation="accept_friend_request"
            ) from e

        logger.info("Friend request accepted", user_id=user_id, requester_id=requester_id)
        return True

    async def list_friend_requests(self, user_id: str) -> list[dict]:
        query = """
            SELECT u.id, u.username
            FROM friend_requests fr
            JOIN users u ON u.id = fr.sender_id
            WHERE fr.receiver_id = %s
            ORDER BY fr.created_at
        """
        rows = await fetch_all(query, (user_id,))
        return [{"id": str(row["id"]), "username": row.get("username")} for row in rows]

    async def list_contacts(self, user_id: str) -> list[dict]:
        query = """
            SELECT u.id, u.username
            FROM user_contacts uc
            JOIN users u ON u.id = uc.contact_id
            WHERE uc.user_id = %s
            ORDER BY u.username
        """
        rows = await fetch_all(query, (user_id,))
        return [{"id": str(row["id"]), "username": row.get("username")} for row in rows]
