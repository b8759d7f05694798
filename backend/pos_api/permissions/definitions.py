# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import CapabilityCategory


# -- SALES --

SALES_CAPABILITIES = [
    ("VIEW_SALES", "View Sales", "List and view sale transactions", CapabilityCategory.SALES),
    ("CREATE_SALE", "Create Sale", "Ring up a new sale (decrements or reserves stock)", CapabilityCategory.SALES),
    ("UPDATE_SALE", "Update Sale", "Edit customer, payment method and notes; complete pending sales", CapabilityCategory.SALES),
    ("CANCEL_SALE", "Cancel Sale", "Cancel a pending or completed sale and restore stock", CapabilityCategory.SALES),
    ("REFUND_SALE", "Refund Sale", "Refund a completed sale", CapabilityCategory.SALES),
]


# -- INVENTORY --

INVENTORY_CAPABILITIES = [
    ("VIEW_INVENTORY", "View Inventory", "View stock levels and movements", CapabilityCategory.INVENTORY),
    ("MANAGE_INVENTORY", "Manage Inventory", "Create, update and deactivate inventory records", CapabilityCategory.INVENTORY),
    ("ADJUST_INVENTORY", "Adjust Inventory", "Adjust, restock and count stock", CapabilityCategory.INVENTORY),
]


# -- CATALOG --

CATALOG_CAPABILITIES = [
    ("VIEW_PRODUCTS", "View Products", "Browse the product catalog", CapabilityCategory.CATALOG),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, edit and deactivate products", CapabilityCategory.CATALOG),
]


# -- BRANCHES --

BRANCH_CAPABILITIES = [
    ("VIEW_BRANCHES", "View Branches", "View branch list and details", CapabilityCategory.BRANCHES),
    ("MANAGE_BRANCHES", "Manage Branches", "Create, edit and deactivate branches; assign staff", CapabilityCategory.BRANCHES),
    ("VIEW_ALL_BRANCHES", "View All Branches", "See sales and dashboards across every branch", CapabilityCategory.BRANCHES),
]


# -- CUSTOMERS --

CUSTOMER_CAPABILITIES = [
    ("VIEW_CUSTOMERS", "View Customers", "Search and view customers", CapabilityCategory.CUSTOMERS),
    ("CREATE_CUSTOMER", "Create Customer", "Register a new customer at the counter", CapabilityCategory.CUSTOMERS),
    ("MANAGE_CUSTOMERS", "Manage Customers", "Edit and deactivate customers", CapabilityCategory.CUSTOMERS),
]


# -- USERS --

USER_CAPABILITIES = [
    ("VIEW_USERS", "View Users", "View staff accounts", CapabilityCategory.USERS),
    ("MANAGE_USERS", "Manage Users", "Create, edit and deactivate staff accounts", CapabilityCategory.USERS),
]


# -- REPORTS --

REPORT_CAPABILITIES = [
    ("VIEW_DASHBOARD", "View Dashboard", "View sales statistics and stock alerts", CapabilityCategory.REPORTS),
]


CAPABILITY_DEFINITIONS = (
    SALES_CAPABILITIES
    + INVENTORY_CAPABILITIES
    + CATALOG_CAPABILITIES
    + BRANCH_CAPABILITIES
    + CUSTOMER_CAPABILITIES
    + USER_CAPABILITIES
    + REPORT_CAPABILITIES
)
