"""
Tests for the delivery router: persist first, push second.
"""

import pytest

from messenger.models.api.realtime_events import SendMessageIntent
from messenger.realtime.errors import PersistenceFailure, ValidationFailure


@pytest.mark.asyncio
async def test_message_to_offline_user_is_stored_and_acked(hub, connect, message_store):
    """Receiver offline: no live push, sender acked, message in history."""
    _, alice_ws = await connect("alice")

    stored = await hub.router.send_message(
        "alice", SendMessageIntent(receiver_id="bob", content="hello")
    )

    assert stored.is_delivered is True
    assert alice_ws.events("messageSent") == [
        {"event": "messageSent", "data": {"messageId": stored.id, "isDelivered": True}}
    ]
    assert alice_ws.events("newMessage") == []

    history = await message_store.find_by_pair("bob", "alice", page=1, limit=20)
    assert [m.content for m in history] == ["hello"]


@pytest.mark.asyncio
async def test_message_to_online_user_is_pushed(hub, connect):
    _, alice_ws = await connect("alice")
    _, bob_ws = await connect("bob")

    stored = await hub.router.send_message(
        "alice", SendMessageIntent(receiver_id="bob", content="hi bob")
    )

    pushed = bob_ws.events("newMessage")
    assert len(pushed) == 1
    assert pushed[0]["data"]["id"] == stored.id
    assert pushed[0]["data"]["senderId"] == "alice"
    assert pushed[0]["data"]["content"] == "hi bob"
    assert len(alice_ws.events("messageSent")) == 1


@pytest.mark.asyncio
async def test_persistence_failure_pushes_nothing(hub, connect, message_store, db_error):
    _, alice_ws = await connect("alice")
    _, bob_ws = await connect("bob")
    message_store.fail_with = db_error

    with pytest.raises(PersistenceFailure, match="Failed to send message"):
        await hub.router.send_message("alice", SendMessageIntent(receiver_id="bob", content="x"))

    assert bob_ws.events("newMessage") == []
    assert alice_ws.events("messageSent") == []


@pytest.mark.asyncio
async def test_mark_read_is_idempotent(hub, connect, message_store):
    _, alice_ws = await connect("alice")
    for text in ("one", "two"):
        await hub.router.send_message("alice", SendMessageIntent(receiver_id="bob", content=text))

    assert await hub.router.mark_read("bob", "alice") == 2
    assert await hub.router.mark_read("bob", "alice") == 0

    assert all(m.is_read for m in message_store.messages)
    # The contact hears about it each time
    assert alice_ws.events("messagesRead") == [
        {"event": "messagesRead", "data": {"by": "bob"}},
        {"event": "messagesRead", "data": {"by": "bob"}},
    ]


@pytest.mark.asyncio
async def test_unread_counts_grouped_by_sender(hub):
    await hub.router.send_message("alice", SendMessageIntent(receiver_id="bob", content="a"))
    await hub.router.send_message("alice", SendMessageIntent(receiver_id="bob", content="b"))
    await hub.router.send_message("carol", SendMessageIntent(receiver_id="bob", content="c"))

    counts = {c.sender_id: c.count for c in await hub.router.get_unread_counts("bob")}

    assert counts == {"alice": 2, "carol": 1}
    assert await hub.router.get_unread_counts("alice") == []


@pytest.mark.asyncio
async def test_friend_request_and_accept_notify_both(hub, connect, contact_store):
    _, alice_ws = await connect("alice")
    _, bob_ws = await connect("bob")

    assert await hub.router.send_friend_request("alice", "bob") is True
    assert bob_ws.events("newFriendRequest") == [
        {"event": "newFriendRequest", "data": {"senderId": "alice"}}
    ]

    await hub.router.accept_friend_request("bob", "alice")

    assert alice_ws.events("friendRequestAccepted") == [
        {"event": "friendRequestAccepted", "data": {"userId": "bob"}}
    ]
    assert bob_ws.events("friendRequestAccepted") == [
        {"event": "friendRequestAccepted", "data": {"requestId": "alice"}}
    ]
    assert ("alice", "bob") in contact_store.contacts
    assert ("bob", "alice") in contact_store.contacts

    with pytest.raises(ValidationFailure, match="No pending friend request"):
        await hub.router.accept_friend_request("bob", "alice")


@pytest.mark.asyncio
async def test_duplicate_friend_request_pushes_once(hub, connect, contact_store):
    _, bob_ws = await connect("bob")

    assert await hub.router.send_friend_request("alice", "bob") is True
    assert await hub.router.send_friend_request("alice", "bob") is False

    assert len(bob_ws.events("newFriendRequest")) == 1
    assert contact_store.requests == [("alice", "bob")]


@pytest.mark.asyncio
async def test_friend_request_to_existing_contact_is_noop(hub, connect, contact_store):
    _, bob_ws = await connect("bob")
    contact_store.contacts |= {("alice", "bob"), ("bob", "alice")}

    assert await hub.router.send_friend_request("alice", "bob") is False
    assert bob_ws.events("newFriendRequest") == []


@pytest.mark.asyncio
async def test_friend_request_validation(hub):
    with pytest.raises(ValidationFailure, match="yourself"):
        await hub.router.send_friend_request("alice", "alice")

    with pytest.raises(ValidationFailure, match="User not found"):
        await hub.router.send_friend_request("alice", "mallory")


@pytest.mark.asyncio
async def test_friend_request_store_failure(hub, contact_store, db_error):
    contact_store.fail_with = db_error

    with pytest.raises(PersistenceFailure):
        await hub.router.send_friend_request("alice", "bob")


@pytest.mark.asyncio
async def test_failed_push_to_receiver_does_not_block_ack(hub, connect, message_store):
    _, alice_ws = await connect("alice")
    _, bob_ws = await connect("bob")
    bob_ws.fail_sends = True

    stored = await hub.router.send_message(
        "alice", SendMessageIntent(receiver_id="bob", content="still stored")
    )

    assert message_store.messages == [stored]
    assert alice_ws.events("messageSent")[0]["data"]["messageId"] == stored.id
