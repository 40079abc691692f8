from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from conftest import agent_headers, bearer

from agenthq.core.auth import mint_human_token
from agenthq.core.realtime import RoomKind, get_registry
from agenthq.core.workspaces import add_workspace_member, create_channel, create_human, create_workspace
from agenthq.db.models import Base
from agenthq.db.session import get_session_factory
from agenthq.main import app


def _join_and_sync(ws, frame):
    # Frames are applied in order, so a pong means the join was handled.
    ws.send_json(frame)
    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


def test_message_created_reaches_channel_subscriber(client, world):
    channel_id = world["general"].id
    with client.websocket_connect(f"/ws?token={world['alice_token']}") as ws:
        _join_and_sync(ws, {"type": "join_channel", "channelId": channel_id})

        r = client.post(f"/api/v1/channels/{channel_id}/messages", json={"content": "hi"}, headers=agent_headers(world["bot_key"]))
        assert r.status_code == 201

        event = ws.receive_json()
        assert event["type"] == "message.created"
        assert event["channelId"] == channel_id
        assert event["payload"]["id"] == r.json()["id"]
        assert event["payload"]["author_type"] == "agent"


def test_handoff_events_reach_workspace_subscriber(client, world):
    ws_id = world["ws"].id
    with client.websocket_connect(f"/ws?agentKey={world['bot_key']}") as ws:
        _join_and_sync(ws, {"type": "join_workspace", "workspaceId": ws_id})

        r = client.post(f"/api/v1/workspaces/{ws_id}/handoffs", json={"title": "help"}, headers=bearer(world["alice_token"]))
        handoff_id = r.json()["id"]
        client.patch(f"/api/v1/handoffs/{handoff_id}", json={"status": "IN_PROGRESS"}, headers=bearer(world["alice_token"]))

        created = ws.receive_json()
        updated = ws.receive_json()
        assert (created["type"], created["workspaceId"]) == ("handoff.created", ws_id)
        assert (updated["type"], updated["payload"]["status"]) == ("handoff.updated", "IN_PROGRESS")


def test_unauthorized_join_is_dropped(client, registry, world):
    with client.websocket_connect(f"/ws?token={world['alice_token']}") as ws:
        _join_and_sync(ws, {"type": "join_channel", "channelId": world["other_channel"].id})
        assert registry.subscribers(RoomKind.CHANNEL, world["other_channel"].id) == []


def test_anonymous_session_cannot_join(client, registry, world):
    with client.websocket_connect("/ws") as ws:
        _join_and_sync(ws, {"type": "join_channel", "channelId": world["general"].id})
        assert registry.subscribers(RoomKind.CHANNEL, world["general"].id) == []
        assert registry.session_count() == 1


def test_malformed_frames_keep_connection_open(client, world):
    with client.websocket_connect(f"/ws?token={world['alice_token']}") as ws:
        ws.send_text("not json")
        ws.send_json({"type": "join_channel"})
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_leave_stops_delivery(client, registry, world):
    channel_id = world["general"].id
    with client.websocket_connect(f"/ws?token={world['alice_token']}") as ws:
        _join_and_sync(ws, {"type": "join_channel", "channelId": channel_id})
        assert len(registry.subscribers(RoomKind.CHANNEL, channel_id)) == 1
        _join_and_sync(ws, {"type": "leave_channel", "channelId": channel_id})
        assert registry.subscribers(RoomKind.CHANNEL, channel_id) == []


def test_open_socket_does_not_pin_a_connection(tmp_path, registry):
    # One pooled connection in total: HTTP only works if idle sockets hold none.
    eng = create_engine(
        f"sqlite:///{tmp_path / 'pool.db'}",
        connect_args={"check_same_thread": False},
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
        future=True,
    )
    Base.metadata.create_all(eng)
    factory = sessionmaker(bind=eng, autocommit=False, autoflush=False, future=True)

    with factory() as setup:
        alice = create_human(setup, "alice@example.com", "Alice", "password1")
        ws_id = create_workspace(setup, "Acme", slug="acme").id
        add_workspace_member(setup, ws_id, alice.id, role="owner")
        channel_id = create_channel(setup, ws_id, "general").id
        token = mint_human_token(alice.id)

    app.dependency_overrides[get_session_factory] = lambda: factory
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        with TestClient(app) as c:
            assert c.get("/api/v1/workspaces", headers=bearer(token)).status_code == 200

            with c.websocket_connect(f"/ws?token={token}") as first, c.websocket_connect(f"/ws?token={token}") as second:
                _join_and_sync(first, {"type": "join_channel", "channelId": channel_id})
                _join_and_sync(second, {"type": "join_workspace", "workspaceId": ws_id})

                assert c.get("/api/v1/workspaces", headers=bearer(token)).status_code == 200
                r = c.post(f"/api/v1/channels/{channel_id}/messages", json={"content": "still here"}, headers=bearer(token))
                assert r.status_code == 201

                event = first.receive_json()
                assert event["type"] == "message.created"
                assert event["payload"]["content"] == "still here"
    finally:
        app.dependency_overrides.clear()
        eng.dispose()


def test_deactivated_agent_socket_loses_rooms(client, registry, world):
    ws_id = world["ws"].id
    with client.websocket_connect(f"/ws?agentKey={world['bot_key']}") as ws:
        _join_and_sync(ws, {"type": "join_workspace", "workspaceId": ws_id})
        assert len(registry.subscribers(RoomKind.WORKSPACE, ws_id)) == 1

        r = client.patch(f"/api/v1/agents/{world['bot'].id}", json={"is_active": False}, headers=bearer(world["alice_token"]))
        assert r.status_code == 200
        assert registry.subscribers(RoomKind.WORKSPACE, ws_id) == []

        # Rejoining is refused too; the connection itself stays usable.
        _join_and_sync(ws, {"type": "join_workspace", "workspaceId": ws_id})
        assert registry.subscribers(RoomKind.WORKSPACE, ws_id) == []
