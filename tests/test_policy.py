"""Tests for role and ownership capability checks."""

from __future__ import annotations

import pytest

from courtside.domain.policy import Action, Actor, EventResource, Role, UserResource, authorize, is_allowed
from courtside.errors import PermissionDeniedError

EVENT = EventResource(event_id=10, host_id=7)


def test_event_host_manages_own_event_only() -> None:
    host = Actor(user_id=7, roles=frozenset({Role.HOST}))
    other_host = Actor(user_id=8, roles=frozenset({Role.HOST}))

    for action in (Action.MANAGE_MATCHMAKING, Action.RECORD_MATCH, Action.REPORT_NO_SHOW, Action.MANAGE_EVENT):
        assert is_allowed(host, action, EVENT)
        assert not is_allowed(other_host, action, EVENT)


def test_owning_an_event_without_host_role_is_not_enough() -> None:
    player = Actor(user_id=7)

    assert not is_allowed(player, Action.RECORD_MATCH, EVENT)


def test_users_read_their_own_credit_only() -> None:
    player = Actor(user_id=3)

    assert is_allowed(player, Action.VIEW_CREDIT_HISTORY, UserResource(3))
    assert is_allowed(player, Action.VIEW_RESTRICTIONS, UserResource(3))
    assert not is_allowed(player, Action.VIEW_CREDIT_HISTORY, UserResource(4))


def test_only_admins_adjust_credit() -> None:
    admin = Actor(user_id=1, roles=frozenset({Role.ADMIN}))
    host = Actor(user_id=7, roles=frozenset({Role.HOST}))

    assert is_allowed(admin, Action.ADJUST_CREDIT, UserResource(3))
    assert is_allowed(admin, Action.RECORD_MATCH, EVENT)
    assert not is_allowed(host, Action.ADJUST_CREDIT, UserResource(3))
    assert not is_allowed(Actor(user_id=3), Action.ADJUST_CREDIT, UserResource(3))


def test_authorize_raises_with_status() -> None:
    with pytest.raises(PermissionDeniedError) as excinfo:
        authorize(Actor(user_id=3), Action.MANAGE_MATCHMAKING, EVENT)

    assert excinfo.value.status_code == 403
