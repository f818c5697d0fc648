"""
Admin Blueprint - Transaction viewer.

Routes:
- /admin/transactions - Transaction list with search, stats and grid/table view
- /admin/transactions/search - HTMX rows partial
- /admin/transactions/<id> - Transaction detail
- /admin/transactions/<id>/delete - Delete transaction
"""

from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify, Response, current_app
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Union

from storefront.database import get_session
from storefront.models import Transaction
from storefront.services import transaction_service
from storefront.utils.http import wants_json

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

VIEWS = ('grid', 'table')


def _load_transactions() -> List[Transaction]:
    """Fetch all transactions; on failure flash the error and show an empty list."""
    try:
        return transaction_service.list_transactions(get_session())
    except SQLAlchemyError as e:
        get_session().rollback()
        current_app.logger.error(f"Error loading transactions: {e}")
        flash(f'Failed to load transactions: {getattr(e, "orig", None) or e}', 'danger')
        return []


@admin_bp.route('/')
def index() -> Response:
    return redirect(url_for('admin.list_transactions'))


@admin_bp.route('/transactions')
def list_transactions() -> Union[str, Response]:
    """Transaction list - with stats and search capability."""
    search_query = request.args.get('q', '').strip()
    view = request.args.get('view', 'grid')
    if view not in VIEWS:
        view = 'grid'

    transactions = _load_transactions()
    filtered = transaction_service.search_transactions(transactions, search_query)
    stats = transaction_service.transaction_stats(transactions)

    if wants_json():
        return jsonify({
            'transactions': [t.to_dict() for t in filtered],
            'total_sales': str(stats['total_sales']),
            'total_transactions': stats['total_transactions'],
        })

    return render_template('admin/transactions.html',
                           transactions=filtered,
                           stats=stats,
                           search_query=search_query,
                           view=view)


@admin_bp.route('/transactions/search')
def search_transactions() -> str:
    """HTMX endpoint - search transactions and return rows only."""
    search_query = request.args.get('q', '').strip()
    view = request.args.get('view', 'grid')
    if view not in VIEWS:
        view = 'grid'
    transactions = transaction_service.search_transactions(_load_transactions(), search_query)
    return render_template('admin/_transaction_rows.html', transactions=transactions, view=view)


@admin_bp.route('/transactions/<int:transaction_id>')
def transaction_detail(transaction_id: int) -> Union[str, Response]:
    """Transaction detail with line items."""
    transaction = transaction_service.get_transaction(get_session(), transaction_id)

    if wants_json():
        return jsonify(transaction.to_dict())
    return render_template('admin/transaction_detail.html', transaction=transaction)


@admin_bp.route('/transactions/<int:transaction_id>/delete', methods=['POST'])
def delete_transaction(transaction_id: int) -> Union[str, Response]:
    """Delete a transaction, then reload the list."""
    session_db = get_session()
    try:
        transaction_service.delete_transaction(session_db, transaction_id)
    except SQLAlchemyError as e:
        current_app.logger.error(f"Error deleting transaction {transaction_id}: {e}")
        if wants_json():
            return jsonify({'status': 'error', 'message': 'Failed to delete transaction'}), 500
        flash('Failed to delete transaction', 'danger')
        return redirect(url_for('admin.list_transactions'))

    if wants_json():
        transactions = transaction_service.list_transactions(session_db)
        return jsonify({
            'status': 'success',
            'message': 'Transaction deleted successfully',
            'transactions': [t.to_dict() for t in transactions],
        })

    flash('Transaction deleted successfully', 'success')
    return redirect(url_for('admin.list_transactions'))
