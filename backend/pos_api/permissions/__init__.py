# Overview: Role-based access control package.
# Re-exports the public API used by decorators and services.

from .categories import CapabilityCategory
from .definitions import CAPABILITY_DEFINITIONS
from .roles import Role, ROLE_CAPABILITIES, BRANCH_SCOPED_ROLES
from .helpers import (
    get_all_capability_codes,
    get_capability_definition,
    parse_role,
    role_has_capability,
    capabilities_for_role,
    is_branch_scoped,
)

__all__ = [
    "CapabilityCategory",
    "CAPABILITY_DEFINITIONS",
    "Role",
    "ROLE_CAPABILITIES",
    "BRANCH_SCOPED_ROLES",
    "get_all_capability_codes",
    "get_capability_definition",
    "parse_role",
    "role_has_capability",
    "capabilities_for_role",
    "is_branch_scoped",
]
