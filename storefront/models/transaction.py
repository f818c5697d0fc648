"""Transaction model."""
import json
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import Column, String, Numeric, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from storefront.database import Base
from storefront.models.product import PK_TYPE

ANONYMOUS_CUSTOMER = 'Anonymous'


def parse_items(raw: Any) -> List[Dict[str, Any]]:
    """
    Normalize the stored line items.

    Rows written by older clients hold a JSON-encoded string instead of a
    native array. Anything unreadable becomes an empty list.
    """
    if raw is None:
        return []
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw or '[]')
        except (TypeError, ValueError):
            return []
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]


class Transaction(Base):
    """Completed checkout. Immutable once written; only deleted by admins."""

    __tablename__ = 'transactions'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    transaction_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    subtotal = Column(Numeric(14, 2), nullable=False)
    tax = Column(Numeric(14, 2), nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    items = Column(JSON().with_variant(JSONB, 'postgresql'), nullable=False, default=list)
    customer_name = Column(String(200), nullable=True)

    # Idempotency key to prevent duplicate transactions on double-submit
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    def __repr__(self):
        return f"<Transaction(id={self.id}, total={self.total})>"

    @property
    def line_items(self) -> List[Dict[str, Any]]:
        return parse_items(self.items)

    @property
    def item_count(self) -> int:
        """Total quantity across line items."""
        return sum(int(item.get('quantity') or 0) for item in self.line_items)

    @property
    def customer_label(self) -> str:
        return self.customer_name or ANONYMOUS_CUSTOMER

    @property
    def occurred_at(self):
        """Best available timestamp for display."""
        return self.created_at or self.transaction_date

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        when = self.occurred_at
        return {
            'id': self.id,
            'transaction_date': self.transaction_date.isoformat() if self.transaction_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'subtotal': str(Decimal(self.subtotal or 0)),
            'tax': str(Decimal(self.tax or 0)),
            'total': str(Decimal(self.total or 0)),
            'items': self.line_items,
            'item_count': self.item_count,
            'customer_name': self.customer_label,
            'date': when.isoformat() if when else None,
        }
