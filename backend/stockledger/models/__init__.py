from .tenancy import Company
from .inventory import Product, InventoryMovement, MOVEMENT_ENTRY, MOVEMENT_EXIT, MOVEMENT_TYPES
from .sales import (
    Sale,
    SaleLineItem,
    SALE_PENDING,
    SALE_PROCESSING,
    SALE_COMPLETED,
    SALE_FAILED,
    SALE_TERMINAL_STATUSES,
)

__all__ = [
    'Company',
    'Product', 'InventoryMovement', 'MOVEMENT_ENTRY', 'MOVEMENT_EXIT', 'MOVEMENT_TYPES',
    'Sale', 'SaleLineItem',
    'SALE_PENDING', 'SALE_PROCESSING', 'SALE_COMPLETED', 'SALE_FAILED', 'SALE_TERMINAL_STATUSES',
]
