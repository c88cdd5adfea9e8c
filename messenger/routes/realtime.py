"""
realtime.py
-----------
Purpose:
    WebSocket endpoint for the realtime channel.

Usage:
    Connect to `/ws?token=<access_token>` (or send `Authorization: Bearer
    <access_token>` with the upgrade request). Frames in both directions are
    JSON objects: {"event": "<name>", "data": {...}}.
"""

from fastapi import APIRouter, Depends, WebSocket

from messenger.realtime.hub import RealtimeHub, get_hub

router = APIRouter()


def _extract_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token

    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket, hub: RealtimeHub = Depends(get_hub)):
    session = hub.open_session(websocket)
    await session.run(_extract_token(websocket))
