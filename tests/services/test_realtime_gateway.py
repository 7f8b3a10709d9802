"""Unit tests for the WebSocket gateway with scripted sockets."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocketDisconnect
from sqlalchemy.exc import OperationalError

from kiu_social.core.security import create_access_token
from kiu_social.realtime.broker import BrokerError, LocalBroker
from kiu_social.realtime.gateway import RealtimeGateway
from kiu_social.realtime.registry import ConnectionRegistry, user_room


class ScriptedSocket:
    """Feeds queued frames to the gateway and records what it sends back."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.accepted = False
        self.closed: tuple[int, str] | None = None

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = (code, reason or "")

    async def receive_text(self) -> str:
        frame = await self.incoming.get()
        if frame is None:
            raise WebSocketDisconnect(code=1000)
        return frame

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)

    def push(self, event: str, data) -> None:
        self.incoming.put_nowait(json.dumps({"event": event, "data": data}))

    def disconnect(self) -> None:
        self.incoming.put_nowait(None)


@pytest.fixture
def gateway_under_test() -> RealtimeGateway:
    return RealtimeGateway(LocalBroker(ConnectionRegistry()))


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_rejects_unknown_token(gateway_under_test, db_session) -> None:
    socket = ScriptedSocket()

    await gateway_under_test.serve(socket, db_session, "not-a-token")

    assert socket.accepted is False
    assert socket.closed == (1008, "Authentication error")


@pytest.mark.asyncio
async def test_offline_only_after_last_connection_closes(gateway_under_test, db_session,
                                                         test_user) -> None:
    token = create_access_token(test_user.id)
    first, second = ScriptedSocket(), ScriptedSocket()

    first_task = asyncio.create_task(gateway_under_test.serve(first, db_session, token))
    second_task = asyncio.create_task(gateway_under_test.serve(second, db_session, token))
    await _settle()
    assert test_user.is_online is True
    assert len(gateway_under_test.registry.connections_for(test_user.id)) == 2

    first.disconnect()
    await first_task
    assert test_user.is_online is True

    second.disconnect()
    await second_task
    assert test_user.is_online is False
    assert test_user.last_seen is not None
    assert len(gateway_under_test.registry) == 0


@pytest.mark.asyncio
async def test_send_message_fans_out_once_per_connection(gateway_under_test, db_session,
                                                         test_user, other_user) -> None:
    sender, recipient = ScriptedSocket(), ScriptedSocket()
    tasks = [
        asyncio.create_task(
            gateway_under_test.serve(sender, db_session, create_access_token(test_user.id))
        ),
        asyncio.create_task(
            gateway_under_test.serve(recipient, db_session, create_access_token(other_user.id))
        ),
    ]
    await _settle()

    recipient.push("join_conversation", test_user.id)
    await _settle()
    sender.push("send_message", {"recipientId": other_user.id, "content": "hi", "messageType": "TEXT"})
    await _settle()

    sender.disconnect()
    recipient.disconnect()
    await asyncio.gather(*tasks)

    assert [frame["event"] for frame in sender.sent] == ["message_sent"]
    assert [frame["event"] for frame in recipient.sent] == ["new_message"]
    assert recipient.sent[0]["data"] == sender.sent[0]["data"]


@pytest.mark.asyncio
async def test_join_self_conversation_is_refused(gateway_under_test, db_session, test_user) -> None:
    socket = ScriptedSocket()
    task = asyncio.create_task(
        gateway_under_test.serve(socket, db_session, create_access_token(test_user.id))
    )
    await _settle()

    socket.push("join_conversation", {"userId": test_user.id})
    socket.push("leave_conversation", {"userId": "someone"})
    await _settle()
    socket.disconnect()
    await task

    assert socket.sent == [
        {"event": "message_error", "data": {"error": "Cannot interact with yourself"}}
    ]


@pytest.mark.asyncio
async def test_handled_frame_leaves_no_open_transaction(gateway_under_test, db_session,
                                                        test_user, other_user) -> None:
    socket = ScriptedSocket()
    task = asyncio.create_task(
        gateway_under_test.serve(socket, db_session, create_access_token(test_user.id))
    )
    await _settle()

    socket.push("join_conversation", {"userId": other_user.id})
    socket.push("typing_start", {"recipientId": other_user.id})
    await _settle()
    assert db_session.in_transaction() is False

    socket.push("join_conversation", {"userId": "missing-user"})
    await _settle()
    assert db_session.in_transaction() is False

    socket.disconnect()
    await task
    assert socket.sent == [{"event": "message_error", "data": {"error": "User not found"}}]


@pytest.mark.asyncio
async def test_presence_failure_on_connect_releases_connection(gateway_under_test, db_session,
                                                               test_user, mocker) -> None:
    mocker.patch(
        "kiu_social.realtime.gateway.set_presence",
        side_effect=OperationalError("UPDATE users", {}, Exception("disk I/O error")),
    )
    socket = ScriptedSocket()

    await gateway_under_test.serve(socket, db_session, create_access_token(test_user.id))

    assert socket.accepted is True
    assert socket.closed == (1011, "")
    assert len(gateway_under_test.registry) == 0
    assert gateway_under_test.registry.members(user_room(test_user.id)) == set()
    # The failed connection was released, so the next one is counted as the first.
    assert await gateway_under_test.broker.connection_opened(test_user.id) == 1


@pytest.mark.asyncio
async def test_broker_failure_is_reported_to_sender(gateway_under_test, db_session,
                                                    test_user, other_user) -> None:
    gateway_under_test.broker.publish = AsyncMock(side_effect=BrokerError("channel down"))
    socket = ScriptedSocket()
    task = asyncio.create_task(
        gateway_under_test.serve(socket, db_session, create_access_token(test_user.id))
    )
    await _settle()

    socket.push("send_message", {"recipientId": other_user.id, "content": "hi"})
    socket.push("typing_start", {"recipientId": other_user.id})
    await _settle()
    socket.disconnect()
    await task

    error = {"event": "message_error", "data": {"error": "Failed to deliver message"}}
    assert socket.sent == [error, error]
    assert db_session.in_transaction() is False
