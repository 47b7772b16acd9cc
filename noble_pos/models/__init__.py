# ==============================================================================
# MODELS LAYER - System data structures
# ==============================================================================
# Domain entities as dataclasses, independent of the persistence mechanism.
# ==============================================================================

from .entities import (
    # Collections
    PRODUCTS,
    SOLD_PRODUCTS,
    SALES,
    USERS,

    # Users
    User,
    UserRole,

    # Inventory
    Product,
    SoldProduct,

    # Cart
    CartLine,

    # Sales
    Sale,
    SaleItem,
    Customer,

    # Payments
    Payment,
    PaymentMethod,

    # Helpers
    to_number,
    to_int,
    to_text,
)

__all__ = [
    'PRODUCTS',
    'SOLD_PRODUCTS',
    'SALES',
    'USERS',
    'User',
    'UserRole',
    'Product',
    'SoldProduct',
    'CartLine',
    'Sale',
    'SaleItem',
    'Customer',
    'Payment',
    'PaymentMethod',
    'to_number',
    'to_int',
    'to_text',
]
