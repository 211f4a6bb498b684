"""Capability checks composed from actor roles and resource relationships."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from courtside.errors import PermissionDeniedError


class Role(str, Enum):
    ADMIN = "admin"
    HOST = "host"
    PLAYER = "player"


class Action(str, Enum):
    MANAGE_EVENT = "manage_event"
    MANAGE_MATCHMAKING = "manage_matchmaking"
    RECORD_MATCH = "record_match"
    REPORT_NO_SHOW = "report_no_show"
    ADJUST_CREDIT = "adjust_credit"
    VIEW_CREDIT_HISTORY = "view_credit_history"
    VIEW_RESTRICTIONS = "view_restrictions"
    PARTICIPATE = "participate"


@dataclass(frozen=True)
class Actor:
    user_id: int
    roles: frozenset[Role] = field(default_factory=lambda: frozenset({Role.PLAYER}))

    def has_role(self, role: Role) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class EventResource:
    event_id: int
    host_id: int


@dataclass(frozen=True)
class UserResource:
    user_id: int


Resource = EventResource | UserResource

_EVENT_HOST_ACTIONS = frozenset(
    {Action.MANAGE_EVENT, Action.MANAGE_MATCHMAKING, Action.RECORD_MATCH, Action.REPORT_NO_SHOW}
)
_SELF_ACTIONS = frozenset({Action.VIEW_CREDIT_HISTORY, Action.VIEW_RESTRICTIONS, Action.PARTICIPATE})


def is_allowed(actor: Actor, action: Action, resource: Resource) -> bool:
    """Return whether ``actor`` may perform ``action`` on ``resource``."""
    if actor.has_role(Role.ADMIN):
        return True

    if action in _EVENT_HOST_ACTIONS:
        return (
            isinstance(resource, EventResource)
            and actor.has_role(Role.HOST)
            and resource.host_id == actor.user_id
        )
    if action in _SELF_ACTIONS:
        return isinstance(resource, UserResource) and resource.user_id == actor.user_id
    # ADJUST_CREDIT is admin-only.
    return False


def authorize(actor: Actor, action: Action, resource: Resource) -> None:
    """Raise PermissionDeniedError unless the capability check passes."""
    if not is_allowed(actor, action, resource):
        raise PermissionDeniedError(
            f"user_id={actor.user_id} may not {action.value} on {resource!r}",
            "You are not allowed to perform this action.",
        )


__all__ = [
    "Action",
    "Actor",
    "EventResource",
    "Resource",
    "Role",
    "UserResource",
    "authorize",
    "is_allowed",
]
