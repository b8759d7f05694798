# Overview: Closed role enumeration and the role -> capability mapping.

from enum import Enum

from .definitions import CAPABILITY_DEFINITIONS


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    CASHIER = "cashier"
    AUDITOR = "auditor"

    @classmethod
    def values(cls) -> list[str]:
        return [r.value for r in cls]


# Roles restricted to the branch recorded on their user account
BRANCH_SCOPED_ROLES = frozenset({Role.MANAGER, Role.CASHIER})

_ALL = frozenset(code for code, *_ in CAPABILITY_DEFINITIONS)
_VIEW = frozenset(code for code in _ALL if code.startswith("VIEW_"))


ROLE_CAPABILITIES: dict[Role, frozenset[str]] = {
    Role.OWNER: _ALL,
    Role.ADMIN: _ALL,
    Role.MANAGER: (_VIEW - {"VIEW_ALL_BRANCHES"}) | {
        "CREATE_SALE",
        "UPDATE_SALE",
        "CANCEL_SALE",
        "REFUND_SALE",
        "MANAGE_INVENTORY",
        "ADJUST_INVENTORY",
        "MANAGE_PRODUCTS",
        "CREATE_CUSTOMER",
        "MANAGE_CUSTOMERS",
        "MANAGE_USERS",
    },
    Role.CASHIER: frozenset({
        "VIEW_SALES",
        "CREATE_SALE",
        "VIEW_INVENTORY",
        "VIEW_PRODUCTS",
        "VIEW_BRANCHES",
        "VIEW_CUSTOMERS",
        "CREATE_CUSTOMER",
        "VIEW_DASHBOARD",
    }),
    Role.AUDITOR: _VIEW,
}
