"""Models package - exports all SQLAlchemy models."""
from storefront.models.product import Product, DEFAULT_ICON
from storefront.models.transaction import Transaction, ANONYMOUS_CUSTOMER, parse_items

__all__ = [
    'Product', 'DEFAULT_ICON',
    'Transaction', 'ANONYMOUS_CUSTOMER', 'parse_items',
]
