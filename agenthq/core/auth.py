from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenthq.config import token_ttl_seconds
from agenthq.core.errors import Forbidden, Unauthenticated
from agenthq.core.workspaces import get_agent_by_key, get_human, touch_agent
from agenthq.db.models import Agent, Human
from agenthq.db.session import get_db
from agenthq.utils.hashing import is_agent_key

logger = logging.getLogger(__name__)

AGENT_KEY_HEADER = "X-Agent-Key"


@dataclass(frozen=True)
class HumanPrincipal:
    human: Human

    @property
    def id(self) -> str:
        return self.human.id


@dataclass(frozen=True)
class AgentPrincipal:
    agent: Agent

    @property
    def id(self) -> str:
        return self.agent.id


Principal = Union[HumanPrincipal, AgentPrincipal]


@dataclass(frozen=True)
class Credentials:
    bearer_token: Optional[str] = None
    agent_key: Optional[str] = None


def _jwt_secret() -> str:
    v = os.getenv("AGENTHQ_JWT_SECRET", "").strip()
    if not v:
        # Dev-friendly fallback; production MUST set AGENTHQ_JWT_SECRET.
        v = "dev-only-not-secure"
    return v


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(s: str) -> bytes:
    pad = "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("utf-8"))


def _jwt_sign(unsigned: str, secret: str) -> str:
    sig = hmac.new(secret.encode("utf-8"), unsigned.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(sig)


def mint_human_token(human_id: str, ttl_seconds: Optional[int] = None) -> str:
    ttl = int(ttl_seconds) if ttl_seconds is not None else token_ttl_seconds()
    now = int(time.time())
    header = {"alg": "HS256", "typ": "JWT"}
    payload = {
        "iss": os.getenv("AGENTHQ_JWT_ISSUER", "agenthq"),
        "iat": now,
        "exp": now + ttl,
        "sub": human_id,
    }
    h = _b64url_encode(json.dumps(header, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    p = _b64url_encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    unsigned = f"{h}.{p}"
    sig = _jwt_sign(unsigned, _jwt_secret())
    return f"{unsigned}.{sig}"


def verify_human_token(token: str) -> dict:
    try:
        h, p, s = token.split(".", 2)
    except ValueError:
        raise Unauthenticated("invalid bearer token")
    expected = _jwt_sign(f"{h}.{p}", _jwt_secret())
    if not hmac.compare_digest(expected, s):
        raise Unauthenticated("invalid token signature")
    try:
        payload = json.loads(_b64url_decode(p))
    except (ValueError, UnicodeDecodeError):
        raise Unauthenticated("invalid token payload")
    if not isinstance(payload, dict):
        raise Unauthenticated("invalid token payload")
    exp = int(payload.get("exp") or 0)
    if not exp or int(time.time()) > exp:
        raise Unauthenticated("token expired")
    return payload


def _resolve_agent(db: Session, token: str) -> AgentPrincipal:
    agent = get_agent_by_key(db, token)
    if agent is None:
        raise Unauthenticated("invalid agent key")
    if not agent.is_active:
        raise Forbidden("agent is deactivated")
    try:
        touch_agent(db, agent)
    except SQLAlchemyError:
        db.rollback()
        logger.warning("could not update last_seen_at for agent %s", agent.id, exc_info=True)
    return AgentPrincipal(agent=agent)


def _resolve_human(db: Session, token: str) -> HumanPrincipal:
    payload = verify_human_token(token)
    sub = payload.get("sub")
    if not sub:
        raise Unauthenticated("invalid token claims")
    human = get_human(db, str(sub))
    if human is None:
        raise Unauthenticated("user not found")
    return HumanPrincipal(human=human)


def resolve_principal(db: Session, credentials: Credentials) -> Principal:
    """
    Resolves credentials to exactly one principal.

    An agent key wins over a bearer token when both are presented. Agent keys
    are also accepted in the bearer slot, recognised by their prefix.
    """
    agent_key = (credentials.agent_key or "").strip()
    bearer = (credentials.bearer_token or "").strip()
    if not agent_key and is_agent_key(bearer):
        agent_key, bearer = bearer, ""

    if agent_key:
        if not is_agent_key(agent_key):
            raise Unauthenticated("invalid agent key")
        return _resolve_agent(db, agent_key)
    if bearer:
        return _resolve_human(db, bearer)
    raise Unauthenticated("missing authorization")


def _bearer_token(request: Request) -> Optional[str]:
    h = request.headers.get("Authorization") or ""
    if not h.lower().startswith("bearer "):
        return None
    return h[7:].strip()


def credentials_from_request(request: Request) -> Credentials:
    return Credentials(
        bearer_token=_bearer_token(request),
        agent_key=request.headers.get(AGENT_KEY_HEADER),
    )


def require_principal(
    request: Request,
    db: Session = Depends(get_db),
) -> Principal:
    return resolve_principal(db, credentials_from_request(request))


def require_human(principal: Principal = Depends(require_principal)) -> HumanPrincipal:
    if not isinstance(principal, HumanPrincipal):
        raise Forbidden("human credentials required")
    return principal


def require_agent(principal: Principal = Depends(require_principal)) -> AgentPrincipal:
    if not isinstance(principal, AgentPrincipal):
        raise Forbidden("agent key required")
    return principal
