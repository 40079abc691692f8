from __future__ import annotations

import pytest

from agenthq.core.auth import (
    AgentPrincipal,
    Credentials,
    HumanPrincipal,
    mint_human_token,
    resolve_principal,
    verify_human_token,
)
from agenthq.core.errors import Forbidden, Unauthenticated, ValidationFailed
from agenthq.core.workspaces import (
    get_agent_by_key,
    get_channels_for_workspace,
    get_human_by_email,
    get_workspace_member,
    register_human,
    set_agent_active,
)
from agenthq.utils.hashing import agent_key_hash, hash_password, new_agent_key, verify_password


def test_password_hash_roundtrip():
    stored = hash_password("correct horse")
    assert stored.startswith("pbkdf2_sha256$")
    assert verify_password("correct horse", stored)
    assert not verify_password("wrong horse", stored)
    assert not verify_password("correct horse", "garbage")


def test_agent_keys_are_prefixed_and_stored_hashed(db, world):
    key = new_agent_key()
    assert key.token.startswith("sk_")
    assert key.prefix == key.token[:11]
    assert key.digest == agent_key_hash(key.token)
    assert key.digest != key.token

    assert world["bot"].api_key_hash == agent_key_hash(world["bot_key"])
    assert get_agent_by_key(db, world["bot_key"]).id == world["bot"].id
    assert get_agent_by_key(db, key.token) is None


def test_human_token_resolves_to_human(db, world):
    principal = resolve_principal(db, Credentials(bearer_token=world["alice_token"]))
    assert isinstance(principal, HumanPrincipal)
    assert principal.id == world["alice"].id


def test_token_claims(world):
    payload = verify_human_token(mint_human_token(world["alice"].id, ttl_seconds=60))
    assert payload["sub"] == world["alice"].id
    assert payload["exp"] - payload["iat"] == 60


def test_expired_token_rejected(db, world):
    token = mint_human_token(world["alice"].id, ttl_seconds=-10)
    with pytest.raises(Unauthenticated):
        resolve_principal(db, Credentials(bearer_token=token))


def test_tampered_token_rejected(db, world):
    token = world["alice_token"]
    head, payload, sig = token.split(".")
    forged = f"{head}.{payload}.{'A' if sig[0] != 'A' else 'B'}{sig[1:]}"
    with pytest.raises(Unauthenticated):
        resolve_principal(db, Credentials(bearer_token=forged))
    with pytest.raises(Unauthenticated):
        resolve_principal(db, Credentials(bearer_token="not-a-token"))


def test_missing_credentials_rejected(db):
    with pytest.raises(Unauthenticated):
        resolve_principal(db, Credentials())


def test_agent_key_resolves_and_updates_last_seen(db, world):
    assert world["bot"].last_seen_at is None

    principal = resolve_principal(db, Credentials(agent_key=world["bot_key"]))
    assert isinstance(principal, AgentPrincipal)
    assert principal.id == world["bot"].id
    assert principal.agent.last_seen_at is not None


def test_agent_key_accepted_in_bearer_slot(db, world):
    principal = resolve_principal(db, Credentials(bearer_token=world["bot_key"]))
    assert isinstance(principal, AgentPrincipal)


def test_agent_key_wins_over_bearer(db, world):
    principal = resolve_principal(
        db, Credentials(bearer_token=world["alice_token"], agent_key=world["bot_key"])
    )
    assert isinstance(principal, AgentPrincipal)
    assert principal.id == world["bot"].id


def test_unknown_agent_key_is_unauthenticated(db, world):
    with pytest.raises(Unauthenticated):
        resolve_principal(db, Credentials(agent_key=new_agent_key().token))
    with pytest.raises(Unauthenticated):
        resolve_principal(db, Credentials(agent_key="not-a-key"))


def test_deactivated_agent_is_forbidden(db, world):
    set_agent_active(db, world["bot"], False)
    with pytest.raises(Forbidden):
        resolve_principal(db, Credentials(agent_key=world["bot_key"]))

    set_agent_active(db, world["bot"], True)
    assert isinstance(resolve_principal(db, Credentials(agent_key=world["bot_key"])), AgentPrincipal)


def test_register_creates_personal_workspace(db):
    human, ws = register_human(db, "dora@example.com", "Dora", "password4", workspace_slug="dora-home")

    assert ws.slug == "dora-home"
    member = get_workspace_member(db, ws.id, human.id)
    assert member is not None and member.role == "owner"
    assert [c.name for c in get_channels_for_workspace(db, ws.id)] == ["general"]


def test_register_is_all_or_nothing(db, world):
    # The slug is taken, so the workspace insert fails after the human was staged.
    with pytest.raises(ValidationFailed):
        register_human(db, "erin@example.com", "Erin", "password5", workspace_slug=world["ws"].slug)

    assert get_human_by_email(db, "erin@example.com") is None

    with pytest.raises(ValidationFailed):
        register_human(db, "alice@example.com", "Alice", "password1", workspace_slug="fresh-slug")
