from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets
from dataclasses import dataclass


AGENT_KEY_PREFIX = "sk_"
PASSWORD_ALGORITHM = "pbkdf2_sha256"
PASSWORD_ITERATIONS = 260_000


def _hash_secret() -> bytes:
    """
    Server-side secret used to hash agent keys before storing them.
    """
    v = os.getenv("AGENTHQ_KEY_HASH_SECRET", "").encode("utf-8")
    if not v:
        # Dev-friendly fallback; production should set AGENTHQ_KEY_HASH_SECRET.
        v = b"dev-only-not-secure"
    return v


def sha256_hmac_hex(value: str) -> str:
    return hmac.new(_hash_secret(), value.encode("utf-8"), hashlib.sha256).hexdigest()


def random_b64url(nbytes: int = 32) -> str:
    return base64.urlsafe_b64encode(secrets.token_bytes(nbytes)).decode("utf-8").rstrip("=")


@dataclass(frozen=True)
class AgentKey:
    token: str
    prefix: str  # safe to display/log
    digest: str


def is_agent_key(value: str) -> bool:
    return (value or "").startswith(AGENT_KEY_PREFIX)


def new_agent_key() -> AgentKey:
    """
    Generates a new agent key.

    Format: sk_<64 hex chars>
    Only the HMAC digest is persisted; the token is shown once at creation.
    """
    token = f"{AGENT_KEY_PREFIX}{secrets.token_hex(32)}"
    return AgentKey(token=token, prefix=token[:11], digest=agent_key_hash(token))


def agent_key_hash(token: str) -> str:
    return sha256_hmac_hex((token or "").strip())


def hash_password(password: str, *, iterations: int = PASSWORD_ITERATIONS) -> str:
    """
    Format: pbkdf2_sha256$<iterations>$<salt>$<digest>
    """
    salt = random_b64url(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    encoded = base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")
    return f"{PASSWORD_ALGORITHM}${iterations}${salt}${encoded}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, expected = (stored or "").split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != PASSWORD_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds)
    encoded = base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")
    return hmac.compare_digest(encoded, expected)
