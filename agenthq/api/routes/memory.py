from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from agenthq.core.auth import AgentPrincipal, require_agent
from agenthq.core.memory import delete_memory, get_memory, query_memories_by_prefix, set_memory
from agenthq.db.models import Memory
from agenthq.db.session import get_db
from agenthq.schemas.memory import MemoryOut, MemorySet
from agenthq.utils.time import iso


router = APIRouter(prefix="/memory", tags=["memory"])


def memory_out(m: Memory) -> MemoryOut:
    return MemoryOut(
        id=m.id,
        agent_id=m.agent_id,
        key=m.key,
        value=m.value,
        expires_at=iso(m.expires_at),
        created_at=iso(m.created_at),
        updated_at=iso(m.updated_at),
    )


@router.post("", response_model=MemoryOut, status_code=201)
def post_memory(
    body: MemorySet,
    db: Session = Depends(get_db),
    principal: AgentPrincipal = Depends(require_agent),
):
    memory = set_memory(db, principal.id, body.key, body.value, expires_at=body.expires_at)
    return memory_out(memory)


@router.get("", response_model=list[MemoryOut])
def query_memory(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    principal: AgentPrincipal = Depends(require_agent),
):
    # Exact key first, then prefix.
    exact = get_memory(db, principal.id, q)
    if exact is not None:
        return [memory_out(exact)]
    return [memory_out(m) for m in query_memories_by_prefix(db, principal.id, q)]


@router.delete("/{key:path}", status_code=204)
def remove_memory(
    key: str,
    db: Session = Depends(get_db),
    principal: AgentPrincipal = Depends(require_agent),
):
    delete_memory(db, principal.id, key)
    return Response(status_code=204)
