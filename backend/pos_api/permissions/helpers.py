# Overview: Utility functions for capability lookups and checks.

from __future__ import annotations

from .definitions import CAPABILITY_DEFINITIONS
from .roles import BRANCH_SCOPED_ROLES, ROLE_CAPABILITIES, Role


def get_all_capability_codes():
    """Get list of all capability codes."""
    return [cap[0] for cap in CAPABILITY_DEFINITIONS]


def get_capability_definition(code):
    """Get full definition for a capability code."""
    for cap in CAPABILITY_DEFINITIONS:
        if cap[0] == code:
            return {
                "code": cap[0],
                "name": cap[1],
                "description": cap[2],
                "category": cap[3],
            }
    return None


def parse_role(value) -> Role | None:
    """Return the Role for a stored/submitted value, or None if it is not a known role."""
    try:
        return Role(value)
    except ValueError:
        return None


def role_has_capability(role, capability: str) -> bool:
    """
    The single authorization check.

    Unknown roles and unknown capability codes are denied.
    """
    parsed = role if isinstance(role, Role) else parse_role(role)
    if parsed is None:
        return False
    return capability in ROLE_CAPABILITIES.get(parsed, frozenset())


def capabilities_for_role(role) -> list[str]:
    parsed = role if isinstance(role, Role) else parse_role(role)
    if parsed is None:
        return []
    return sorted(ROLE_CAPABILITIES.get(parsed, frozenset()))


def is_branch_scoped(role) -> bool:
    parsed = role if isinstance(role, Role) else parse_role(role)
    return parsed in BRANCH_SCOPED_ROLES
