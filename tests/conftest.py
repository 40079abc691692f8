from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure `import agenthq.*` works under pytest
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from agenthq.core.auth import mint_human_token  # noqa: E402
from agenthq.core.realtime import RealtimeRegistry, get_registry  # noqa: E402
from agenthq.core.workspaces import (  # noqa: E402
    add_workspace_member,
    create_agent,
    create_channel,
    create_human,
    create_workspace,
)
from agenthq.db.models import Base  # noqa: E402
from agenthq.db.session import get_db, get_session_factory  # noqa: E402
from agenthq.main import app  # noqa: E402


@dataclass
class RecordingTransport:
    open: bool = True
    frames: list = field(default_factory=list)

    def writable(self) -> bool:
        return self.open

    def send(self, frame: dict) -> None:
        self.frames.append(frame)


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def db(engine) -> Session:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def registry() -> RealtimeRegistry:
    return RealtimeRegistry()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture()
def client(db: Session, registry: RealtimeRegistry, session_factory):
    def _get_db_override():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def world(db: Session):
    """
    Two workspaces: `ws` with member `alice`, channel `general` and agent
    `bot`; `other_ws` with member `bob` and agent `other_bot`.
    """
    alice = create_human(db, "alice@example.com", "Alice", "password1")
    bob = create_human(db, "bob@example.com", "Bob", "password2")

    ws = create_workspace(db, "Acme", slug="acme")
    add_workspace_member(db, ws.id, alice.id, role="owner")
    general = create_channel(db, ws.id, "general")
    bot, bot_key = create_agent(db, ws.id, "Support Bot")

    other_ws = create_workspace(db, "Globex", slug="globex")
    add_workspace_member(db, other_ws.id, bob.id, role="owner")
    other_channel = create_channel(db, other_ws.id, "random")
    other_bot, other_key = create_agent(db, other_ws.id, "Globex Bot")

    return {
        "alice": alice,
        "bob": bob,
        "ws": ws,
        "general": general,
        "bot": bot,
        "bot_key": bot_key.token,
        "other_ws": other_ws,
        "other_channel": other_channel,
        "other_bot": other_bot,
        "other_key": other_key.token,
        "alice_token": mint_human_token(alice.id),
        "bob_token": mint_human_token(bob.id),
    }


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def agent_headers(key: str) -> dict:
    return {"X-Agent-Key": key}


@pytest.fixture()
def make_session():
    from agenthq.core.realtime import Session as RealtimeSession

    def _make(principal=None) -> RealtimeSession:
        return RealtimeSession(transport=RecordingTransport(), principal=principal)

    return _make
