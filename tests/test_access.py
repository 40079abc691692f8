from __future__ import annotations

import pytest

from agenthq.core.access import (
    can_access_workspace,
    check_agent_access,
    check_channel_access,
    check_handoff_access,
    check_workspace_access,
)
from agenthq.core.auth import AgentPrincipal, HumanPrincipal
from agenthq.core.errors import Forbidden, NotFound
from agenthq.core.handoffs import create_handoff
from agenthq.core.workspaces import add_workspace_member


def test_members_and_own_agents_can_access(db, world):
    alice = HumanPrincipal(world["alice"])
    bot = AgentPrincipal(world["bot"])

    assert can_access_workspace(db, alice, world["ws"].id)
    assert can_access_workspace(db, bot, world["ws"].id)
    assert check_channel_access(db, bot, world["general"].id).id == world["general"].id


def test_cross_workspace_access_is_forbidden(db, world):
    alice = HumanPrincipal(world["alice"])
    bot = AgentPrincipal(world["bot"])
    foreign = create_handoff(db, world["other_ws"].id, "not yours")

    for principal in (alice, bot):
        assert not can_access_workspace(db, principal, world["other_ws"].id)
        with pytest.raises(Forbidden):
            check_workspace_access(db, principal, world["other_ws"].id)
        with pytest.raises(Forbidden):
            check_channel_access(db, principal, world["other_channel"].id)
        with pytest.raises(Forbidden):
            check_handoff_access(db, principal, foreign.id)
        with pytest.raises(Forbidden):
            check_agent_access(db, principal, world["other_bot"].id)


def test_agent_scope_ignores_membership_rows(db, world):
    # Adding a human membership never widens an agent's scope.
    add_workspace_member(db, world["other_ws"].id, world["alice"].id)
    assert can_access_workspace(db, HumanPrincipal(world["alice"]), world["other_ws"].id)
    assert not can_access_workspace(db, AgentPrincipal(world["bot"]), world["other_ws"].id)


def test_unknown_resources_are_not_found(db, world):
    alice = HumanPrincipal(world["alice"])
    with pytest.raises(NotFound):
        check_channel_access(db, alice, "missing")
    with pytest.raises(NotFound):
        check_handoff_access(db, alice, "missing")
    with pytest.raises(NotFound):
        check_agent_access(db, alice, "missing")
