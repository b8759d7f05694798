from .branches import Branch
from .catalog import Product
from .inventory import Inventory, InventoryMovement
from .customers import Customer, customer_branches
from .auth import User, SessionToken
from .sales import Sale, SaleItem, SALE_STATUSES, PAYMENT_METHODS

__all__ = [
    'Branch',
    'Product',
    'Inventory', 'InventoryMovement',
    'Customer', 'customer_branches',
    'User', 'SessionToken',
    'Sale', 'SaleItem', 'SALE_STATUSES', 'PAYMENT_METHODS',
]
