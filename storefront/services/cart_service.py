"""
Cart service - per-visitor shopping cart.

The cart is a plain state object. Every mutation writes the full snapshot
(a JSON-serializable list of line dicts) back through a CartStore, so the
stored copy is always the latest state and never a queue of operations.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from storefront.models.product import DEFAULT_ICON

DEFAULT_TAX_RATE = Decimal('0.10')
CENT = Decimal('0.01')


def to_money(value: Any) -> Decimal:
    """Quantize a number to two decimals (ROUND_HALF_UP)."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class CartLine:
    """One product snapshot plus quantity."""
    id: int
    name: str
    price: int
    quantity: int
    description: str = ''
    icon: str = DEFAULT_ICON
    category: str = ''

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.price) * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'icon': self.icon,
            'category': self.category,
            'quantity': self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['CartLine']:
        """Build a line from a stored dict, defaulting missing fields."""
        try:
            product_id = int(data['id'])
        except (KeyError, TypeError, ValueError):
            return None
        try:
            price = int(data.get('price') or 0)
        except (TypeError, ValueError):
            price = 0
        raw_quantity = data.get('quantity')
        try:
            quantity = 1 if raw_quantity in (None, '') else int(raw_quantity)
        except (TypeError, ValueError):
            quantity = 1
        if quantity <= 0:
            return None
        return cls(
            id=product_id,
            name=str(data.get('name') or ''),
            price=price,
            quantity=quantity,
            description=str(data.get('description') or ''),
            icon=str(data.get('icon') or DEFAULT_ICON),
            category=str(data.get('category') or ''),
        )


@dataclass
class CartSummary:
    """Cart totals."""
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    total_items: int
    total_quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subtotal': str(self.subtotal),
            'tax': str(self.tax),
            'total': str(self.total),
            'total_items': self.total_items,
            'total_quantity': self.total_quantity,
        }


class CartStore:
    """Where cart snapshots are kept between requests."""

    def load(self) -> Any:
        raise NotImplementedError

    def save(self, snapshot: List[Dict[str, Any]]) -> None:
        raise NotImplementedError


class MemoryCartStore(CartStore):
    """Keeps the snapshot in memory (tests, scripts)."""

    def __init__(self, snapshot: Any = None):
        self.snapshot = snapshot

    def load(self) -> Any:
        return self.snapshot

    def save(self, snapshot: List[Dict[str, Any]]) -> None:
        self.snapshot = snapshot


class SessionCartStore(CartStore):
    """Keeps the snapshot in the Flask session under a single key."""

    def __init__(self, session, key: str = 'cart'):
        self.session = session
        self.key = key

    def load(self) -> Any:
        return self.session.get(self.key)

    def save(self, snapshot: List[Dict[str, Any]]) -> None:
        self.session[self.key] = snapshot
        self.session.modified = True


class Cart:
    """Shopping cart keyed by product id."""

    def __init__(self, lines: Optional[Iterable[CartLine]] = None,
                 store: Optional[CartStore] = None,
                 tax_rate: Decimal = DEFAULT_TAX_RATE):
        self._lines: List[CartLine] = []
        for line in lines or []:
            existing = self._find(line.id)
            if existing:
                existing.quantity += line.quantity
            else:
                self._lines.append(line)
        self.store = store
        self.tax_rate = Decimal(str(tax_rate))

    @classmethod
    def from_snapshot(cls, snapshot: Any, store: Optional[CartStore] = None,
                      tax_rate: Decimal = DEFAULT_TAX_RATE) -> 'Cart':
        """Rebuild a cart from a stored snapshot. Malformed input reads as empty."""
        lines = []
        if isinstance(snapshot, list):
            for entry in snapshot:
                if isinstance(entry, dict):
                    line = CartLine.from_dict(entry)
                    if line:
                        lines.append(line)
        return cls(lines, store=store, tax_rate=tax_rate)

    @classmethod
    def load(cls, store: CartStore, tax_rate: Decimal = DEFAULT_TAX_RATE) -> 'Cart':
        return cls.from_snapshot(store.load(), store=store, tax_rate=tax_rate)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def get_line(self, product_id: int) -> Optional[CartLine]:
        return self._find(product_id)

    def _find(self, product_id: int) -> Optional[CartLine]:
        for line in self._lines:
            if line.id == product_id:
                return line
        return None

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save(self.to_snapshot())

    def add_item(self, product: Dict[str, Any], quantity: int = 1) -> Optional[CartLine]:
        """Add quantity of a product; repeated adds increment the same line."""
        line = self._find(int(product['id']))
        if line:
            line.quantity += quantity
        else:
            line = CartLine.from_dict({**product, 'quantity': quantity})
            if line is None:
                return None
            self._lines.append(line)
        self._persist()
        return line

    def set_quantity(self, product_id: int, quantity: int) -> None:
        """Overwrite a line's quantity; zero or less removes it."""
        if quantity <= 0:
            self._lines = [line for line in self._lines if line.id != product_id]
        else:
            line = self._find(product_id)
            if line:
                line.quantity = quantity
        self._persist()

    def remove_item(self, product_id: int) -> None:
        self._lines = [line for line in self._lines if line.id != product_id]
        self._persist()

    def clear(self) -> None:
        self._lines = []
        self._persist()

    def summary(self) -> CartSummary:
        subtotal = sum((line.line_total for line in self._lines), Decimal('0'))
        tax = to_money(subtotal * self.tax_rate)
        return CartSummary(
            subtotal=to_money(subtotal),
            tax=tax,
            total=to_money(subtotal + tax),
            total_items=len(self._lines),
            total_quantity=self.item_count,
        )

    def to_snapshot(self) -> List[Dict[str, Any]]:
        return [line.to_dict() for line in self._lines]
