# messenger/models/api/realtime_events.py
"""
Payload models for the realtime channel.

Every frame is a JSON object of the form {"event": <name>, "data": {...}}.
Client intents are validated with the models below before they reach the
delivery router; server pushes are built with `build_frame`.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from messenger.models.domain.message_domain import MediaType

# client -> server
SEND_MESSAGE = "sendMessage"
MARK_MESSAGES_AS_READ = "markMessagesAsRead"
GET_UNREAD_COUNTS = "getUnreadCounts"
SEND_FRIEND_REQUEST = "sendFriendRequest"
ACCEPT_FRIEND_REQUEST = "acceptFriendRequest"

# server -> client
NEW_MESSAGE = "newMessage"
MESSAGE_SENT = "messageSent"
MESSAGES_READ = "messagesRead"
UNREAD_COUNTS = "unreadCounts"
NEW_FRIEND_REQUEST = "newFriendRequest"
FRIEND_REQUEST_ACCEPTED = "friendRequestAccepted"
USER_STATUS = "userStatus"
ERROR = "error"


class _IntentModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class Frame(BaseModel):
    """Envelope of every frame on the channel."""

    event: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class SendMessageIntent(_IntentModel):
    receiver_id: str = Field(..., min_length=1)
    content: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None
    thumbnail_url: str | None = None

    @model_validator(mode="after")
    def _content_or_media(self) -> "SendMessageIntent":
        if not self.content and not self.media_url:
            raise ValueError("Either message content or media is required")
        return self


class MarkReadIntent(_IntentModel):
    contact_id: str = Field(..., min_length=1)


class SendFriendRequestIntent(_IntentModel):
    receiver_id: str = Field(..., min_length=1)


class AcceptFriendRequestIntent(_IntentModel):
    request_id: str = Field(..., min_length=1)


def build_frame(event: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"event": event, "data": data or {}}


def user_status_payload(
    user_id: str, is_online: bool, last_seen_at: datetime | None = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {"userId": user_id, "isOnline": is_online}
    if last_seen_at is not None:
        payload["lastSeenAt"] = last_seen_at.isoformat()
    return payload


def error_payload(message: str) -> dict[str, Any]:
    return {"message": message}
