"""
Transaction service - checkout persistence and the admin transaction log.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models import Transaction, ANONYMOUS_CUSTOMER
from storefront.exceptions import (
    DuplicateSubmissionError, EmptyCartError, NotFoundError, TransactionSaveError
)
from storefront.services.cart_service import Cart

logger = logging.getLogger(__name__)


def build_transaction_data(cart: Cart) -> Dict[str, Any]:
    """Snapshot cart lines and totals into a transaction payload."""
    summary = cart.summary()
    return {
        'transaction_date': datetime.now(timezone.utc),
        'subtotal': summary.subtotal,
        'tax': summary.tax,
        'total': summary.total,
        'items': [
            {
                'product_id': line.id,
                'product_name': line.name,
                'quantity': line.quantity,
                'price': line.price,
                'subtotal': line.price * line.quantity,
            }
            for line in cart.lines
        ],
    }


@dataclass
class CheckoutResult:
    """Stored transaction and whether this call inserted it."""
    transaction: Transaction
    created: bool = True


def _find_by_key(session: Session, idempotency_key: str) -> Optional[Transaction]:
    return session.query(Transaction).filter_by(idempotency_key=idempotency_key).first()


def _item_quantities(items: List[Dict[str, Any]]) -> List[Tuple[int, int]]:
    return sorted((int(item.get('product_id') or 0), int(item.get('quantity') or 0)) for item in items)


def _replay(existing: Transaction, items: List[Dict[str, Any]]) -> CheckoutResult:
    """
    Resolve a checkout whose idempotency key is already stored.

    The stored row stands for this cart only when it holds the same
    products and quantities; anything else is a stale form re-submitted
    over a different cart.
    """
    if _item_quantities(existing.line_items) != _item_quantities(items):
        logger.warning(f"[CHECKOUT] Key reused for transaction #{existing.id} with a different cart")
        raise DuplicateSubmissionError(existing.id)
    logger.info(f"[CHECKOUT] Duplicate submission, returning #{existing.id}")
    return CheckoutResult(existing, created=False)


def _save_failed(session: Session, error: SQLAlchemyError) -> TransactionSaveError:
    session.rollback()
    detail = str(getattr(error, 'orig', None) or error)
    logger.error(f"[CHECKOUT] Error saving transaction: {detail}", exc_info=True)
    return TransactionSaveError(detail)


def checkout(session: Session, cart: Cart, customer_name: Optional[str] = None,
             idempotency_key: Optional[str] = None) -> CheckoutResult:
    """
    Persist the cart as a transaction.

    The cart is not modified here; clearing it after success is the
    caller's decision so a failed insert leaves it untouched. A key that is
    already stored returns that row with ``created=False`` when it matches
    the cart, including when a concurrent request wins the insert.

    Raises:
        EmptyCartError: the cart has no lines (nothing is inserted).
        DuplicateSubmissionError: the key belongs to a different cart.
        TransactionSaveError: the database rejected the insert.
    """
    if cart.is_empty:
        raise EmptyCartError()

    data = build_transaction_data(cart)
    try:
        if idempotency_key:
            existing = _find_by_key(session, idempotency_key)
            if existing:
                return _replay(existing, data['items'])

        transaction = Transaction(
            customer_name=(customer_name or '').strip() or None,
            idempotency_key=idempotency_key,
            **data
        )
        session.add(transaction)
        session.commit()
        session.refresh(transaction)
    except IntegrityError as e:
        if not idempotency_key:
            raise _save_failed(session, e) from e
        session.rollback()
        try:
            existing = _find_by_key(session, idempotency_key)
        except SQLAlchemyError as lookup_error:
            raise _save_failed(session, lookup_error) from lookup_error
        if existing is None:
            raise _save_failed(session, e) from e
        return _replay(existing, data['items'])
    except SQLAlchemyError as e:
        raise _save_failed(session, e) from e

    logger.info(f"[CHECKOUT] Transaction #{transaction.id} saved, total={transaction.total}")
    return CheckoutResult(transaction)


def list_transactions(session: Session) -> List[Transaction]:
    """All transactions, newest id first."""
    return session.query(Transaction).order_by(Transaction.id.desc()).all()


def search_transactions(transactions: List[Transaction], query: Optional[str]) -> List[Transaction]:
    """Case-insensitive substring filter over id and customer label."""
    q = (query or '').strip().lower()
    if not q:
        return list(transactions)
    return [
        t for t in transactions
        if q in str(t.id).lower() or q in (t.customer_name or ANONYMOUS_CUSTOMER).lower()
    ]


def get_transaction(session: Session, transaction_id: int) -> Transaction:
    transaction = session.query(Transaction).filter_by(id=transaction_id).first()
    if not transaction:
        raise NotFoundError('Transaction not found')
    return transaction


def delete_transaction(session: Session, transaction_id: int) -> None:
    """Delete a transaction by id."""
    transaction = get_transaction(session, transaction_id)
    try:
        session.delete(transaction)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise
    logger.info(f"[ADMIN] Transaction #{transaction_id} deleted")


def transaction_stats(transactions: List[Transaction]) -> Dict[str, Any]:
    """Total sales and count for the admin header."""
    return {
        'total_sales': sum((Decimal(t.total or 0) for t in transactions), Decimal('0')),
        'total_transactions': len(transactions),
    }
