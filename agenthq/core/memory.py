from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from agenthq.db.models import Memory, new_id
from agenthq.utils.time import as_utc, now_utc


def _not_expired(now: datetime):
    return or_(Memory.expires_at.is_(None), Memory.expires_at > now)


def _upsert_stmt(dialect: str, values: dict[str, Any]):
    insert = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}.get(dialect)
    if insert is None:
        return None
    stmt = insert(Memory).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[Memory.agent_id, Memory.key],
        set_={
            "value": stmt.excluded.value,
            "expires_at": stmt.excluded.expires_at,
            "updated_at": stmt.excluded.updated_at,
        },
    )


def set_memory(
    db: Session,
    agent_id: str,
    key: str,
    value: Any,
    expires_at: Optional[datetime] = None,
) -> Memory:
    """
    Last-write-wins upsert on (agent_id, key). The replace is a single
    conditional insert, so readers never see the key missing or doubled.
    """
    now = now_utc()
    expires_at = as_utc(expires_at)
    stmt = _upsert_stmt(
        db.get_bind().dialect.name,
        {
            "id": new_id(),
            "agent_id": agent_id,
            "key": key,
            "value": value,
            "expires_at": expires_at,
            "created_at": now,
            "updated_at": now,
        },
    )
    if stmt is not None:
        db.execute(stmt)
    else:
        # No native upsert: update-or-insert inside one transaction.
        existing = db.execute(
            select(Memory).where(Memory.agent_id == agent_id, Memory.key == key).with_for_update()
        ).scalar_one_or_none()
        if existing is None:
            db.add(Memory(agent_id=agent_id, key=key, value=value, expires_at=expires_at, created_at=now, updated_at=now))
        else:
            existing.value = value
            existing.expires_at = expires_at
            existing.updated_at = now
    db.commit()

    memory = db.execute(
        select(Memory)
        .where(Memory.agent_id == agent_id, Memory.key == key)
        .execution_options(populate_existing=True)
    ).scalar_one()
    return memory


def get_memory(db: Session, agent_id: str, key: str, now: Optional[datetime] = None) -> Optional[Memory]:
    return db.execute(
        select(Memory)
        .where(Memory.agent_id == agent_id, Memory.key == key, _not_expired(now or now_utc()))
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def query_memories_by_prefix(
    db: Session,
    agent_id: str,
    prefix: str,
    now: Optional[datetime] = None,
) -> list[Memory]:
    rows = db.execute(
        select(Memory)
        .where(
            Memory.agent_id == agent_id,
            Memory.key.startswith(prefix, autoescape=True),
            _not_expired(now or now_utc()),
        )
        .order_by(Memory.key)
        .execution_options(populate_existing=True)
    ).scalars()
    return list(rows)


def delete_memory(db: Session, agent_id: str, key: str) -> bool:
    result = db.execute(delete(Memory).where(Memory.agent_id == agent_id, Memory.key == key))
    db.commit()
    return result.rowcount > 0
