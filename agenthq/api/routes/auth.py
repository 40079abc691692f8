from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agenthq.core.auth import HumanPrincipal, mint_human_token, require_human
from agenthq.core.errors import Unauthenticated
from agenthq.core.workspaces import get_human_by_email, register_human, slugify
from agenthq.db.models import Human
from agenthq.db.session import get_db
from agenthq.schemas.auth import AuthResponse, HumanOut, LoginRequest, RegisterRequest
from agenthq.utils.hashing import random_b64url, verify_password
from agenthq.utils.time import iso


router = APIRouter(prefix="/auth", tags=["auth"])


def human_out(h: Human) -> HumanOut:
    # Never expose password_hash.
    return HumanOut(
        id=h.id,
        email=h.email,
        name=h.name,
        avatar_url=h.avatar_url,
        created_at=iso(h.created_at),
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    # Every new user gets a personal workspace with a default channel.
    slug = f"{slugify(body.name)}-{random_b64url(6).lower().replace('_', '-')}"
    human, _ = register_human(db, email=body.email, name=body.name, password=body.password, workspace_slug=slug)
    return AuthResponse(token=mint_human_token(human.id), user=human_out(human))


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    human = get_human_by_email(db, body.email)
    if human is None or not verify_password(body.password, human.password_hash):
        raise Unauthenticated("invalid email or password")
    return AuthResponse(token=mint_human_token(human.id), user=human_out(human))


@router.get("/me", response_model=HumanOut)
def me(principal: HumanPrincipal = Depends(require_human)):
    return human_out(principal.human)
