# Overview: Sale status state machine.

"""
STATE MACHINE:

    pending ---> completed ---> refunded
       |             |
       +--> cancelled <--+

    pending:   stock reserved, not yet decremented
    completed: stock decremented (default entry state)
    cancelled: terminal; stock restored or reservation released
    refunded:  terminal; stock optionally restored

Anything not listed in TRANSITIONS is rejected with
InvalidStateTransitionError. The check has no side effects.
"""

from __future__ import annotations

from typing import Literal

from pos_api.errors import InvalidStateTransitionError, ValidationError


PENDING = "pending"
COMPLETED = "completed"
CANCELLED = "cancelled"
REFUNDED = "refunded"

VALID_STATUSES = {PENDING, COMPLETED, CANCELLED, REFUNDED}
TERMINAL_STATUSES = frozenset({CANCELLED, REFUNDED})
INITIAL_STATUSES = frozenset({PENDING, COMPLETED})
SaleStatus = Literal["pending", "completed", "cancelled", "refunded"]

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset({CANCELLED, REFUNDED}),
    CANCELLED: frozenset(),
    REFUNDED: frozenset(),
}


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}",
            {"status": status},
        )


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def require_transition(current: str, target: str) -> None:
    """Raise InvalidStateTransitionError unless current -> target is allowed."""
    validate_status(target)
    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot change sale status from {current} to {target}",
            {"from": current, "to": target, "allowed": sorted(TRANSITIONS.get(current, ()))},
        )
