"""
Persistence contracts and PostgreSQL implementations.
"""

from messenger.repositories.contact_repository import ContactStore, PostgresContactStore
from messenger.repositories.message_repository import MessageStore, PostgresMessageStore

__all__ = [
    "ContactStore",
    "MessageStore",
    "PostgresContactStore",
    "PostgresMessageStore",
]
