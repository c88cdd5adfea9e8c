# messenger/models/api/message_response.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from messenger.models.domain.message_domain import Message


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Pagination(_CamelModel):
    current_page: int
    total_pages: int
    total_messages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_messages=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class MessageHistoryResponse(_CamelModel):
    """Response for GET /messages/{other_user_id}"""

    messages: list[Message] = Field(..., description="Page of messages, oldest first")
    pagination: Pagination


class FriendRequestItem(_CamelModel):
    id: str
    username: str | None = None


class FriendRequestsResponse(_CamelModel):
    """Response for GET /friends/requests"""

    friend_requests: list[FriendRequestItem]


class ContactResponse(_CamelModel):
    """One entry of GET /contacts, with live presence and unread count."""

    id: str
    username: str | None = None
    is_online: bool = False
    last_seen_at: datetime | None = None
    unread_count: int = 0
