"""
Store controller - owns the storefront state for one request.

Blueprints stay thin: they turn a user action into `dispatch(action,
payload)` and render the returned StoreState. The controller never touches
Flask directly; the cart store and database session are handed in.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.services import catalog_service, transaction_service
from storefront.services.cart_service import Cart, CartStore, DEFAULT_TAX_RATE

logger = logging.getLogger(__name__)


@dataclass
class Receipt:
    """Confirmation shown after a successful checkout."""
    transaction_id: int
    date: Optional[datetime]
    item_count: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    items: List[Dict[str, Any]] = field(default_factory=list)
    customer_name: Optional[str] = None
    created: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transaction_id': self.transaction_id,
            'date': self.date.isoformat() if self.date else None,
            'item_count': self.item_count,
            'subtotal': str(self.subtotal),
            'tax': str(self.tax),
            'total': str(self.total),
            'items': self.items,
            'customer_name': self.customer_name,
            'created': self.created,
        }


@dataclass
class StoreState:
    """Everything a storefront view needs to render."""
    products: List[Dict[str, Any]]
    cart: Cart
    demo_mode: bool = False
    warning: Optional[str] = None
    receipt: Optional[Receipt] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'products': self.products,
            'demo_mode': self.demo_mode,
            'warning': self.warning,
            'cart': {
                'items': self.cart.to_snapshot(),
                'item_count': self.cart.item_count,
                'summary': self.cart.summary().to_dict(),
            },
            'receipt': self.receipt.to_dict() if self.receipt else None,
        }


class StoreController:
    """Single owner of the catalog and cart for a page session."""

    def __init__(self, db_session: Session, cart_store: CartStore,
                 tax_rate: Decimal = DEFAULT_TAX_RATE, cache=None, cache_ttl: Optional[int] = None):
        self.db_session = db_session
        self.cart_store = cart_store
        self.tax_rate = tax_rate
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._state: Optional[StoreState] = None
        self._actions: Dict[str, Callable[..., Any]] = {
            'add': self.add_to_cart,
            'update': self.update_quantity,
            'remove': self.remove_from_cart,
            'clear': self.clear_cart,
            'checkout': self.checkout,
        }

    def start(self) -> StoreState:
        """Load the catalog and the stored cart."""
        catalog = catalog_service.load_catalog(self.db_session, cache=self.cache, ttl=self.cache_ttl)
        cart = Cart.load(self.cart_store, tax_rate=self.tax_rate)
        self._state = StoreState(
            products=catalog.products,
            cart=cart,
            demo_mode=catalog.demo_mode,
            warning=catalog.warning,
        )
        return self._state

    def teardown(self) -> None:
        self._state = None

    @property
    def state(self) -> StoreState:
        if self._state is None:
            raise RuntimeError('StoreController.start() has not been called')
        return self._state

    def dispatch(self, action: str, payload: Optional[Dict[str, Any]] = None) -> StoreState:
        """Apply a user action and return the resulting state."""
        handler = self._actions.get(action)
        if handler is None:
            raise BusinessLogicError(f'Unknown action: {action}')
        handler(**(payload or {}))
        return self.state

    def add_to_cart(self, product_id: int, quantity: int = 1) -> None:
        product = catalog_service.get_product(self.state.products, product_id)
        if product is None:
            raise NotFoundError('Product not found')
        self.state.cart.add_item(product, quantity)
        logger.debug(f"[CART] {product['name']} x{quantity} added")

    def update_quantity(self, product_id: int, quantity: int) -> None:
        self.state.cart.set_quantity(product_id, quantity)

    def remove_from_cart(self, product_id: int) -> None:
        self.state.cart.remove_item(product_id)

    def clear_cart(self) -> None:
        self.state.cart.clear()

    def checkout(self, customer_name: Optional[str] = None,
                 idempotency_key: Optional[str] = None) -> Receipt:
        """
        Save the cart as a transaction, then empty it.

        A replayed key with the same items also empties the cart since those
        items are already stored. Any exception leaves the cart untouched.
        """
        cart = self.state.cart
        result = transaction_service.checkout(
            self.db_session, cart,
            customer_name=customer_name,
            idempotency_key=idempotency_key,
        )
        transaction = result.transaction
        receipt = Receipt(
            transaction_id=transaction.id,
            date=transaction.occurred_at,
            item_count=transaction.item_count,
            subtotal=Decimal(transaction.subtotal),
            tax=Decimal(transaction.tax),
            total=Decimal(transaction.total),
            items=transaction.line_items,
            customer_name=transaction.customer_label,
            created=result.created,
        )
        cart.clear()
        self.state.receipt = receipt
        return receipt
