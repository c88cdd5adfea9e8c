"""
contacts.py
-----------
Purpose:
    Contact list and pending friend requests for the caller.

    - `/contacts` merges stored contacts with the live presence table and the
      caller's unread counts.
    - `/contacts/{contact_id}` is the same view for a single user.
    - `/friends/requests` lists users who sent the caller a pending request.
    Sending and accepting requests happens over the realtime channel.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from messenger.auth.verify import auth_dependency
from messenger.db.helpers import DatabaseError
from messenger.infrastructure.observability.logging import get_logger
from messenger.models.api.message_response import (
    ContactResponse,
    FriendRequestItem,
    FriendRequestsResponse,
)
from messenger.realtime.hub import RealtimeHub, get_hub

router = APIRouter(tags=["contacts"])
logger = get_logger(__name__)


@router.get("/contacts", response_model=list[ContactResponse])
async def list_contacts(
    user_id: str = Depends(auth_dependency),
    hub: RealtimeHub = Depends(get_hub),
):
    try:
        contacts = await hub.contact_store.list_contacts(user_id)
        unread = await hub.message_store.count_unread_grouped_by_sender(user_id)
    except DatabaseError as e:
        logger.error("Failed to load contacts", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contacts temporarily unavailable",
        ) from e

    result = []
    for contact in contacts:
        contact_id = contact["id"]
        result.append(
            ContactResponse(
                id=contact_id,
                username=contact.get("username"),
                is_online=await hub.presence.is_online(contact_id),
                last_seen_at=await hub.presence.last_seen(contact_id),
                unread_count=unread.get(contact_id, 0),
            )
        )

    logger.info("Contacts served", user_id=user_id, count=len(result))
    return result


@router.get("/contacts/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: str,
    user_id: str = Depends(auth_dependency),
    hub: RealtimeHub = Depends(get_hub),
):
    try:
        contact = await hub.contact_store.get_user(contact_id)
        unread = await hub.message_store.count_unread_grouped_by_sender(user_id)
    except DatabaseError as e:
        logger.error(
            "Failed to load contact", user_id=user_id, contact_id=contact_id, error=str(e)
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contacts temporarily unavailable",
        ) from e

    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return ContactResponse(
        id=contact_id,
        username=contact.get("username"),
        is_online=await hub.presence.is_online(contact_id),
        last_seen_at=await hub.presence.last_seen(contact_id),
        unread_count=unread.get(contact_id, 0),
    )


@router.get("/friends/requests", response_model=FriendRequestsResponse)
async def list_friend_requests(
    user_id: str = Depends(auth_dependency),
    hub: RealtimeHub = Depends(get_hub),
):
    try:
        requests = await hub.contact_store.list_friend_requests(user_id)
    except DatabaseError as e:
        logger.error("Failed to load friend requests", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Friend requests temporarily unavailable",
        ) from e

    return FriendRequestsResponse(
        friend_requests=[FriendRequestItem(**request) for request in requests]
    )
