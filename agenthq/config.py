import logging
import os

from dotenv import load_dotenv
from sqlalchemy.engine import URL


DEFAULT_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60
DEFAULT_DATABASE_URL = "sqlite:///./local.db"


def get_database_url() -> str:
    """
    DATABASE_URL wins; otherwise a Postgres URL is assembled from DB_* parts
    when host and password are both set; otherwise a local SQLite file.
    """
    # .env is optional and overrides the shell (local dev, hosted Postgres credentials).
    load_dotenv(override=True)

    url = os.getenv("DATABASE_URL", "").strip()
    if url:
        return url

    host = os.getenv("DB_HOST")
    password = os.getenv("DB_PASSWORD")
    if not (host and password):
        return DEFAULT_DATABASE_URL

    # URL.create quotes credentials containing '@', ':' and the like.
    return URL.create(
        "postgresql+psycopg2",
        username=os.getenv("DB_USER", "postgres"),
        password=password,
        host=host,
        port=int(os.getenv("DB_PORT", "5432")),
        database=os.getenv("DB_NAME", "postgres"),
        query={"sslmode": os.getenv("DB_SSLMODE", "require")},
    ).render_as_string(hide_password=False)


def token_ttl_seconds() -> int:
    raw = os.getenv("AGENTHQ_TOKEN_TTL_SECONDS", "").strip()
    if not raw:
        return DEFAULT_TOKEN_TTL_SECONDS
    try:
        return max(60, int(raw))
    except ValueError:
        return DEFAULT_TOKEN_TTL_SECONDS


def configure_logging() -> None:
    level = os.getenv("AGENTHQ_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
