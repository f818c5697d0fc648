"""Storefront blueprint: catalog page, cart actions and checkout."""
import uuid
from typing import Any, Dict, Union

from flask import (
    Blueprint, render_template, request, redirect, url_for, flash, session,
    jsonify, current_app, g, Response
)

from storefront.database import get_session
from storefront.exceptions import BusinessLogicError
from storefront.services.cache_service import get_cache
from storefront.services.cart_service import SessionCartStore
from storefront.services.store_controller import StoreController, StoreState
from storefront.blueprints.metrics import transactions_created_total, catalog_fallback_requests_total
from storefront.utils.http import is_htmx, wants_json

store_bp = Blueprint('store', __name__)

RECEIPT_SESSION_KEY = 'last_receipt'


def _payload() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _parse_product_id(payload: Dict[str, Any]) -> int:
    try:
        return int(payload.get('product_id'))
    except (TypeError, ValueError):
        raise BusinessLogicError('Missing or invalid product_id')


def _parse_quantity(value: Any, clamp: bool) -> int:
    """Parse a quantity field. Add-to-cart clamps bad input to 1."""
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        if clamp:
            return 1
        raise BusinessLogicError('Quantity must be a whole number')
    return max(1, quantity) if clamp else quantity


def _get_controller() -> StoreController:
    """Create and start the per-request store controller."""
    if 'store_controller' not in g:
        cache = get_cache() if current_app.config.get('CACHE_ENABLED') else None
        controller = StoreController(
            get_session(),
            SessionCartStore(session, current_app.config.get('CART_SESSION_KEY', 'cart')),
            tax_rate=current_app.config.get('TAX_RATE'),
            cache=cache,
            cache_ttl=current_app.config.get('CACHE_PRODUCTS_TTL'),
        )
        state = controller.start()
        if state.demo_mode:
            catalog_fallback_requests_total.inc()
        g.store_controller = controller
    return g.store_controller


@store_bp.teardown_request
def _teardown_controller(exception=None):
    controller = g.pop('store_controller', None)
    if controller is not None:
        controller.teardown()


def _render_cart(state: StoreState) -> str:
    return render_template('store/_cart.html',
                           cart=state.cart,
                           summary=state.cart.summary(),
                           idempotency_key=uuid.uuid4().hex)


def _respond(state: StoreState, status: int = 200) -> Union[str, Response, tuple]:
    """Render state in the format the caller asked for."""
    if wants_json():
        return jsonify(state.to_dict()), status
    if is_htmx():
        return _render_cart(state), status
    return redirect(url_for('store.index'))


@store_bp.route('/')
def index() -> str:
    """Storefront page: catalog grid and cart."""
    state = _get_controller().state
    receipt = session.pop(RECEIPT_SESSION_KEY, None)

    if wants_json():
        return jsonify(state.to_dict())

    return render_template('store/index.html',
                           products=state.products,
                           demo_mode=state.demo_mode,
                           warning=state.warning,
                           cart=state.cart,
                           summary=state.cart.summary(),
                           receipt=receipt,
                           idempotency_key=uuid.uuid4().hex)


@store_bp.route('/cart', methods=['GET'])
def cart_view() -> Union[str, Response, tuple]:
    """Current cart (JSON or HTMX partial)."""
    state = _get_controller().state
    if wants_json():
        return jsonify(state.to_dict())
    return _render_cart(state)


@store_bp.route('/cart/add', methods=['POST'])
def cart_add() -> Union[str, Response, tuple]:
    """Add a product to the cart."""
    payload = _payload()
    product_id = _parse_product_id(payload)
    quantity = _parse_quantity(payload.get('qty', 1), clamp=True)

    state = _get_controller().dispatch('add', {'product_id': product_id, 'quantity': quantity})
    current_app.logger.info(f"[cart_add] product_id={product_id}, qty={quantity}, cart_size={len(state.cart.lines)}")
    return _respond(state)


@store_bp.route('/cart/update', methods=['POST'])
def cart_update() -> Union[str, Response, tuple]:
    """Set a cart line quantity; zero or less removes the line."""
    payload = _payload()
    product_id = _parse_product_id(payload)
    quantity = _parse_quantity(payload.get('qty'), clamp=False)

    state = _get_controller().dispatch('update', {'product_id': product_id, 'quantity': quantity})
    return _respond(state)


@store_bp.route('/cart/remove', methods=['POST'])
def cart_remove() -> Union[str, Response, tuple]:
    """Remove a product from the cart."""
    product_id = _parse_product_id(_payload())
    state = _get_controller().dispatch('remove', {'product_id': product_id})
    return _respond(state)


@store_bp.route('/cart/clear', methods=['POST'])
def cart_clear() -> Union[str, Response, tuple]:
    """Empty the cart."""
    state = _get_controller().dispatch('clear')
    return _respond(state)


@store_bp.route('/checkout', methods=['POST'])
def checkout() -> Union[str, Response, tuple]:
    """Save the cart as a transaction."""
    payload = _payload()
    controller = _get_controller()

    receipt = controller.checkout(
        customer_name=payload.get('customer_name'),
        idempotency_key=payload.get('idempotency_key') or None,
    )
    if receipt.created:
        transactions_created_total.inc()
    current_app.logger.info(
        f"[checkout] transaction_id={receipt.transaction_id}, total={receipt.total}, created={receipt.created}"
    )

    if wants_json():
        return jsonify({'status': 'success', **controller.state.to_dict()}), 201 if receipt.created else 200

    session[RECEIPT_SESSION_KEY] = receipt.to_dict()
    if receipt.created:
        flash(f'Transaction #{receipt.transaction_id} saved successfully', 'success')
    else:
        flash(f'Transaction #{receipt.transaction_id} was already saved', 'success')
    if is_htmx():
        response = redirect(url_for('store.index'))
        response.headers['HX-Redirect'] = url_for('store.index')
        return response
    return redirect(url_for('store.index'))
