# Overview: Capability category constants for grouping related capabilities.


class CapabilityCategory:
    """Capability categories for organization and UI display."""
    SALES = "SALES"
    INVENTORY = "INVENTORY"
    CATALOG = "CATALOG"
    BRANCHES = "BRANCHES"
    CUSTOMERS = "CUSTOMERS"
    USERS = "USERS"
    REPORTS = "REPORTS"
