from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class MediaType(str, Enum):
    """Kinds of media a message may carry."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


class Message(BaseModel):
    """A stored direct message, serialized to clients in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | None = None
    sender_id: str
    receiver_id: str
    content: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None
    thumbnail_url: str | None = None
    timestamp: datetime | None = None
    is_delivered: bool = False
    is_read: bool = False

    @model_validator(mode="after")
    def _content_or_media(self) -> "Message":
        if not self.content and not self.media_url:
            raise ValueError("Either message content or media is required")
        return self

    def to_event(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UnreadCount(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sender_id: str
    count: int = Field(..., ge=0)
