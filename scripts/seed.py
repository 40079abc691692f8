from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

# Ensure `import agenthq.*` works when run as `python scripts/seed.py`
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from agenthq.config import configure_logging  # noqa: E402
from agenthq.core.handoffs import HandoffPriority, create_handoff  # noqa: E402
from agenthq.core.messages import AgentAuthor, HumanAuthor, MessageType, SystemAuthor, create_message  # noqa: E402
from agenthq.core.workspaces import (  # noqa: E402
    add_workspace_member,
    create_agent,
    create_channel,
    create_human,
    create_workspace,
    get_human_by_email,
)
from agenthq.db.models import Base  # noqa: E402
from agenthq.db.session import SessionLocal, engine  # noqa: E402

logger = logging.getLogger("agenthq.seed")

DEMO_EMAIL = "demo@agenthq.io"


def seed(password: str, create_tables: bool) -> int:
    if create_tables:
        Base.metadata.create_all(engine)

    db = SessionLocal()
    try:
        if get_human_by_email(db, DEMO_EMAIL) is not None:
            logger.info("seed data already present, skipping")
            return 0

        demo = create_human(db, DEMO_EMAIL, "Alex Chen", password)
        sarah = create_human(db, "sarah@agenthq.io", "Sarah Miller", password)
        mike = create_human(db, "mike@agenthq.io", "Mike Johnson", password)

        ws = create_workspace(db, "Acme Corp", slug="acme-corp")
        add_workspace_member(db, ws.id, demo.id, role="owner")
        add_workspace_member(db, ws.id, sarah.id)
        add_workspace_member(db, ws.id, mike.id)

        general = create_channel(db, ws.id, "general", "General discussion and announcements")
        engineering = create_channel(db, ws.id, "engineering", "Engineering team discussions")
        create_channel(db, ws.id, "leadership", "Leadership only", is_private=True)

        support_bot, support_key = create_agent(db, ws.id, "Support Bot", "Triages inbound customer tickets")
        deploy_bot, deploy_key = create_agent(db, ws.id, "Deploy Bot", "Runs and reports on deployments")

        create_message(db, general.id, SystemAuthor(), "Welcome to Acme Corp!", message_type=MessageType.SYSTEM)
        create_message(db, general.id, HumanAuthor(demo.id), "Morning all, agents are online.")
        create_message(db, engineering.id, AgentAuthor(deploy_bot.id), "Deployed api v2.3.1 to staging.")

        create_handoff(
            db,
            ws.id,
            title="Refund request over approval limit",
            description="Customer asks for a $1,200 refund; policy caps agent refunds at $500.",
            priority=HandoffPriority.HIGH,
            channel_id=general.id,
            from_agent_id=support_bot.id,
            to_human_id=sarah.id,
        )
        create_handoff(
            db,
            ws.id,
            title="Production deploy needs sign-off",
            priority=HandoffPriority.URGENT,
            channel_id=engineering.id,
            from_agent_id=deploy_bot.id,
        )

        # Keys are only recoverable here.
        print(f"workspace: {ws.slug} ({ws.id})")
        print(f"login: {DEMO_EMAIL} / {password}")
        print(f"agent {support_bot.name}: {support_key.token}")
        print(f"agent {deploy_bot.name}: {deploy_key.token}")
        return 0
    finally:
        db.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed demo workspace data.")
    parser.add_argument("--password", default="demo123", help="password for the demo users")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="create tables from models instead of relying on alembic",
    )
    args = parser.parse_args(argv)
    configure_logging()
    return seed(args.password, args.create_tables)


if __name__ == "__main__":
    raise SystemExit(main())
