"""
Catalog service - loads the product list.

The catalog is read once from the `products` table. An empty table is
seeded with the placeholder list; any database failure falls back to the
same placeholder list in memory (demo mode) without retrying.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models import Product
from storefront.exceptions import CatalogNotConfiguredError

logger = logging.getLogger(__name__)

CACHE_MODULE = 'products'
CACHE_KEY = 'catalog'

OFFLINE_WARNING = 'Failed to load products from database. Using offline data.'

PLACEHOLDER_PRODUCTS: List[Dict[str, Any]] = [
    {
        'id': 1,
        'name': 'Classic Notebook',
        'description': 'High-quality ruled notebook perfect for writing and note-taking.',
        'price': 25000,
        'icon': 'fas fa-book',
        'category': 'Notebooks',
    },
    {
        'id': 2,
        'name': 'Premium Pen Set',
        'description': 'Professional ballpoint pen set with smooth ink flow.',
        'price': 45000,
        'icon': 'fas fa-pen',
        'category': 'Pens',
    },
    {
        'id': 3,
        'name': 'Colored Pencils',
        'description': '24-color pencil set for artistic and creative work.',
        'price': 35000,
        'icon': 'fas fa-palette',
        'category': 'Art Supplies',
    },
    {
        'id': 4,
        'name': 'Study Guide Book',
        'description': 'Comprehensive study guide for academic excellence.',
        'price': 75000,
        'icon': 'fas fa-graduation-cap',
        'category': 'Books',
    },
    {
        'id': 5,
        'name': 'Highlighter Set',
        'description': '6-color highlighter set for marking important text.',
        'price': 20000,
        'icon': 'fas fa-marker',
        'category': 'Markers',
    },
    {
        'id': 6,
        'name': 'Leather Portfolio',
        'description': 'Professional leather portfolio bag for documents.',
        'price': 120000,
        'icon': 'fas fa-briefcase',
        'category': 'Bags',
    },
    {
        'id': 7,
        'name': 'Sticky Notes Pack',
        'description': 'Multicolor sticky notes for organization and reminders.',
        'price': 15000,
        'icon': 'fas fa-sticky-note',
        'category': 'Organization',
    },
    {
        'id': 8,
        'name': 'Scientific Calculator',
        'description': 'Advanced calculator for mathematical computations.',
        'price': 85000,
        'icon': 'fas fa-calculator',
        'category': 'Electronics',
    },
]


@dataclass
class CatalogResult:
    """Loaded catalog plus how it was obtained."""
    products: List[Dict[str, Any]] = field(default_factory=list)
    demo_mode: bool = False
    warning: Optional[str] = None


def placeholder_products() -> List[Dict[str, Any]]:
    """Fresh copy of the placeholder catalog."""
    return [dict(p) for p in PLACEHOLDER_PRODUCTS]


def is_missing_schema(error: Exception) -> bool:
    """True when the error means the products table does not exist."""
    orig = getattr(error, 'orig', None)
    if getattr(orig, 'pgcode', None) == '42P01':
        return True
    if getattr(getattr(orig, 'diag', None), 'sqlstate', None) == '42P01':
        return True
    message = str(orig or error).lower()
    return 'no such table' in message or ('relation' in message and 'does not exist' in message)


def _read_products(session: Session) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in session.query(Product).order_by(Product.id).all()]


def seed_products(session: Session) -> int:
    """
    Insert placeholder products into an empty table.

    Returns the number of rows inserted (0 when the table already has data).
    """
    if session.query(Product.id).first() is not None:
        return 0
    for data in PLACEHOLDER_PRODUCTS:
        session.add(Product(**data))
    session.commit()
    logger.info(f"[CATALOG] Seeded {len(PLACEHOLDER_PRODUCTS)} placeholder products")
    return len(PLACEHOLDER_PRODUCTS)


def fetch_products(session: Session) -> List[Dict[str, Any]]:
    """
    Read the catalog ordered by id, seeding an empty table first.

    Raises:
        CatalogNotConfiguredError: the products table does not exist.
        SQLAlchemyError: any other database failure.
    """
    try:
        products = _read_products(session)
        if not products:
            seed_products(session)
            products = _read_products(session)
        return products
    except SQLAlchemyError as e:
        session.rollback()
        if is_missing_schema(e):
            raise CatalogNotConfiguredError() from e
        raise


def load_catalog(session: Session, cache=None, ttl: Optional[int] = None) -> CatalogResult:
    """
    Load the catalog, falling back to placeholder data on any failure.

    Only real database results are cached; demo-mode results are rebuilt on
    every call so the store recovers as soon as the database does.
    """
    if cache is not None:
        cached = cache.get(CACHE_MODULE, CACHE_KEY)
        if cached:
            return CatalogResult(products=cached)

    try:
        products = fetch_products(session)
    except CatalogNotConfiguredError as e:
        logger.warning(f"[CATALOG] Products table missing: {e.__cause__}")
        return CatalogResult(products=placeholder_products(), demo_mode=True, warning=e.message)
    except SQLAlchemyError as e:
        logger.warning(f"[CATALOG] Error loading products: {e}")
        return CatalogResult(products=placeholder_products(), demo_mode=True, warning=OFFLINE_WARNING)

    if cache is not None:
        cache.set(CACHE_MODULE, CACHE_KEY, products, ttl)
    return CatalogResult(products=products)


def get_product(products: List[Dict[str, Any]], product_id: int) -> Optional[Dict[str, Any]]:
    """Find a product in an already-loaded catalog."""
    for product in products:
        if product.get('id') == product_id:
            return product
    return None
