from __future__ import annotations

from datetime import datetime, timezone

import pytest

from agenthq.core.errors import InvalidTransition, NotFound, ValidationFailed
from agenthq.core.handoffs import (
    HandoffPriority,
    HandoffStatus,
    check_transition,
    create_handoff,
    get_handoff,
    get_handoffs_for_workspace,
    transition,
    update_handoff_status,
)
from agenthq.db.models import Handoff


def test_transition_table():
    assert check_transition("OPEN", "IN_PROGRESS") == HandoffStatus.IN_PROGRESS
    assert check_transition("IN_PROGRESS", "RESOLVED") == HandoffStatus.RESOLVED

    for current, requested in [
        ("OPEN", "RESOLVED"),
        ("OPEN", "OPEN"),
        ("IN_PROGRESS", "OPEN"),
        ("RESOLVED", "IN_PROGRESS"),
        ("RESOLVED", "OPEN"),
        ("OPEN", "CLOSED"),
    ]:
        with pytest.raises(InvalidTransition) as e:
            check_transition(current, requested)
        assert e.value.status_code == 409
        assert e.value.current == current


def test_in_memory_transition_sets_resolved_at_only_when_resolving():
    h = Handoff(workspace_id="w", title="t", status="OPEN", priority="MEDIUM")
    transition(h, HandoffStatus.IN_PROGRESS)
    assert h.status == "IN_PROGRESS"
    assert h.resolved_at is None

    stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    transition(h, "RESOLVED", now=stamp)
    assert h.status == "RESOLVED"
    assert h.resolved_at == stamp


def test_create_always_starts_open(db, world):
    h = create_handoff(db, world["ws"].id, "Refund approval", priority=HandoffPriority.HIGH)
    assert h.status == "OPEN"
    assert h.priority == "HIGH"
    assert h.resolved_at is None


def test_create_validates_channel_and_target(db, world):
    with pytest.raises(NotFound):
        create_handoff(db, world["ws"].id, "x", channel_id=world["other_channel"].id)
    with pytest.raises(ValidationFailed):
        create_handoff(db, world["ws"].id, "x", to_human_id=world["bob"].id)

    h = create_handoff(
        db,
        world["ws"].id,
        "x",
        channel_id=world["general"].id,
        from_agent_id=world["bot"].id,
        to_human_id=world["alice"].id,
    )
    assert h.channel_id == world["general"].id
    assert h.to_human_id == world["alice"].id


def test_open_cannot_skip_to_resolved(db, world):
    h = create_handoff(db, world["ws"].id, "Escalation")
    with pytest.raises(InvalidTransition):
        update_handoff_status(db, h, "RESOLVED")

    stored = get_handoff(db, h.id)
    assert stored.status == "OPEN"
    assert stored.resolved_at is None


def test_full_lifecycle_persists(db, world):
    h = create_handoff(db, world["ws"].id, "Escalation")

    h = update_handoff_status(db, h, "IN_PROGRESS")
    assert h.status == "IN_PROGRESS"
    assert h.resolved_at is None

    h = update_handoff_status(db, h, HandoffStatus.RESOLVED)
    assert h.status == "RESOLVED"
    assert h.resolved_at is not None
    resolved_at = h.resolved_at

    with pytest.raises(InvalidTransition):
        update_handoff_status(db, h, "IN_PROGRESS")
    stored = get_handoff(db, h.id)
    assert stored.status == "RESOLVED"
    assert stored.resolved_at == resolved_at


def test_list_filters_by_status(db, world):
    a = create_handoff(db, world["ws"].id, "a")
    b = create_handoff(db, world["ws"].id, "b")
    create_handoff(db, world["other_ws"].id, "elsewhere")
    update_handoff_status(db, b, "IN_PROGRESS")

    all_ids = {h.id for h in get_handoffs_for_workspace(db, world["ws"].id)}
    assert all_ids == {a.id, b.id}

    open_ids = [h.id for h in get_handoffs_for_workspace(db, world["ws"].id, status=HandoffStatus.OPEN)]
    assert open_ids == [a.id]


def test_priority_rank_orders_urgency():
    ranked = sorted(HandoffPriority, key=lambda p: p.rank)
    assert ranked == [HandoffPriority.LOW, HandoffPriority.MEDIUM, HandoffPriority.HIGH, HandoffPriority.URGENT]
