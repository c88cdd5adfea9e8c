"""
messages.py
-----------
Purpose:
    Message history between the caller and one other user.

    Live delivery happens over the realtime channel; this endpoint is how a
    client catches up on what was stored while it was offline.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from messenger.auth.verify import auth_dependency
from messenger.config import settings
from messenger.db.helpers import DatabaseError, with_db_retry
from messenger.infrastructure.observability.logging import get_logger
from messenger.models.api.message_response import MessageHistoryResponse, Pagination
from messenger.models.domain.message_domain import Message
from messenger.realtime.hub import RealtimeHub, get_hub
from messenger.repositories.message_repository import MessageStore

router = APIRouter(prefix="/messages", tags=["messages"])
logger = get_logger(__name__)


@with_db_retry(max_retries=2, base_delay=0.1)
async def _load_history(
    store: MessageStore, user_id: str, other_user_id: str, page: int, limit: int
) -> tuple[list[Message], int]:
    messages = await store.find_by_pair(user_id, other_user_id, page, limit)
    total = await store.count_by_pair(user_id, other_user_id)
    return messages, total


@router.get("/{other_user_id}", response_model=MessageHistoryResponse)
async def message_history(
    other_user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(
        settings.HISTORY_DEFAULT_PAGE_SIZE, ge=1, le=settings.HISTORY_MAX_PAGE_SIZE
    ),
    user_id: str = Depends(auth_dependency),
    hub: RealtimeHub = Depends(get_hub),
):
    try:
        messages, total = await _load_history(
            hub.message_store, user_id, other_user_id, page, limit
        )
    except DatabaseError as e:
        logger.error(
            "Failed to load message history",
            user_id=user_id,
            other_user_id=other_user_id,
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Message history temporarily unavailable",
        ) from e

    logger.info(
        "Message history served",
        user_id=user_id,
        other_user_id=other_user_id,
        page=page,
        returned=len(messages),
    )
    return MessageHistoryResponse(
        messages=messages, pagination=Pagination.build(page, limit, total)
    )
