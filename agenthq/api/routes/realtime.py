from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from agenthq.core.auth import Credentials, Principal, resolve_principal
from agenthq.core.errors import Forbidden, Unauthenticated
from agenthq.core.protocol import apply_control_frame, parse_control_frame
from agenthq.core.realtime import QueueTransport, RealtimeRegistry, Session, get_registry
from agenthq.db.session import get_session_factory
from agenthq.schemas.realtime import ControlFrame

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


# Each unit of work below opens and closes its own session, so an idle socket
# never holds a pooled connection.


def _handshake_principal(factory: sessionmaker, credentials: Credentials) -> Optional[Principal]:
    if not (credentials.bearer_token or credentials.agent_key):
        return None
    with factory() as db:
        try:
            return resolve_principal(db, credentials)
        except (Unauthenticated, Forbidden) as e:
            logger.info("websocket handshake without identity: %s", e.detail)
            return None


def _apply(
    factory: sessionmaker,
    registry: RealtimeRegistry,
    session: Session,
    frame: ControlFrame,
) -> Optional[dict[str, Any]]:
    with factory() as db:
        return apply_control_frame(db, registry, session, frame)


async def _drain(websocket: WebSocket, transport: QueueTransport) -> None:
    while True:
        frame = await transport.next_frame()
        try:
            await websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError):
            transport.close()
            return


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(default=None),
    agent_key: Optional[str] = Query(default=None, alias="agentKey"),
    factory: sessionmaker = Depends(get_session_factory),
    registry: RealtimeRegistry = Depends(get_registry),
):
    principal = await run_in_threadpool(
        _handshake_principal, factory, Credentials(bearer_token=token, agent_key=agent_key)
    )
    await websocket.accept()

    transport = QueueTransport(asyncio.get_running_loop())
    session = Session(transport=transport, principal=principal)
    registry.register(session)
    writer = asyncio.create_task(_drain(websocket, transport))
    logger.info(
        "websocket connected: session=%s principal=%s",
        session.session_id,
        principal.id if principal is not None else None,
    )

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text") or message.get("bytes")
            if not raw:
                continue
            frame = parse_control_frame(raw)
            if frame is None:
                continue
            try:
                reply = await run_in_threadpool(_apply, factory, registry, session, frame)
            except SQLAlchemyError:
                logger.exception("control frame failed for session %s", session.session_id)
                continue
            if reply is not None:
                transport.send(reply)
    except WebSocketDisconnect:
        pass
    finally:
        # Always runs, including on abnormal disconnects.
        transport.close()
        registry.deregister(session)
        writer.cancel()
        logger.info("websocket disconnected: session=%s", session.session_id)
