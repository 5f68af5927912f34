"""
auth/policy.py -- Role and status enumerations plus the access policy.

Every guarded route names an Action; can_perform() is the single place that
decides whether a Role may perform it. Route code never compares role strings.

Layer rule: stdlib only. No imports from api/, core/, or market/.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


class UserStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class Action(str, Enum):
    """Every operation that sits behind the access policy."""

    view_profile = "profile:view"
    edit_profile = "profile:edit"
    submit_inquiry = "inquiry:submit"
    manage_inquiries = "inquiry:manage"
    manage_vehicles = "vehicle:manage"
    manage_auctions = "auction:manage"
    manage_users = "user:manage"


_USER_ACTIONS: frozenset[Action] = frozenset(
    {
        Action.view_profile,
        Action.edit_profile,
        Action.submit_inquiry,
    }
)

_GRANTS: dict[Role, frozenset[Action]] = {
    Role.user: _USER_ACTIONS,
    Role.admin: frozenset(Action),
}


def can_perform(role: Role | str, action: Action) -> bool:
    """Return True if `role` is allowed to perform `action`.

    Unknown role strings (e.g. a row edited by hand) are denied everything.
    """
    try:
        resolved = Role(role)
    except ValueError:
        return False
    return action in _GRANTS[resolved]
