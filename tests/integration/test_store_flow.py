"""
Integration tests for the storefront: cart actions and checkout over HTTP.
"""

import pytest
from decimal import Decimal
from prometheus_client import REGISTRY

from storefront.database import get_session
from storefront.models import Transaction

JSON_HEADERS = {'Accept': 'application/json'}


def _add(client, product_id, qty=1):
    return client.post('/cart/add', json={'product_id': product_id, 'qty': qty})


def _cart(client):
    return client.get('/cart', headers=JSON_HEADERS).get_json()['cart']


def _created_count():
    return REGISTRY.get_sample_value('storefront_transactions_created_total') or 0


class TestCatalogPage:

    def test_index_renders_seeded_products(self, client):
        response = client.get('/')

        assert response.status_code == 200
        html = response.data.decode()
        assert 'Classic Notebook' in html
        assert 'Rp 25.000' in html
        assert 'Demo mode' not in html

    def test_index_json_state(self, client):
        data = client.get('/', headers=JSON_HEADERS).get_json()

        assert data['demo_mode'] is False
        assert len(data['products']) == 8
        assert data['cart']['items'] == []
        assert data['cart']['summary']['total'] == '0.00'


class TestCartActions:

    def test_repeated_adds_accumulate_across_requests(self, client):
        _add(client, 1, 2)
        _add(client, 1, 3)

        cart = _cart(client)
        assert len(cart['items']) == 1
        assert cart['items'][0]['quantity'] == 5
        assert cart['item_count'] == 5

    @pytest.mark.parametrize('qty', [0, -4, 'abc', None])
    def test_add_clamps_bad_quantity_to_one(self, client, qty):
        response = _add(client, 2, qty)

        assert response.status_code == 200
        assert response.get_json()['cart']['items'][0]['quantity'] == 1

    def test_add_unknown_product_returns_404(self, client):
        response = _add(client, 999)

        assert response.status_code == 404
        assert response.get_json()['message'] == 'Product not found'
        assert _cart(client)['items'] == []

    def test_add_without_product_id_returns_400(self, client):
        response = client.post('/cart/add', json={'qty': 1})
        assert response.status_code == 400

    def test_update_sets_quantity(self, client):
        _add(client, 1)
        response = client.post('/cart/update', json={'product_id': 1, 'qty': 4})

        assert response.get_json()['cart']['items'][0]['quantity'] == 4

    def test_update_with_non_numeric_quantity_returns_400(self, client):
        _add(client, 1, 2)
        response = client.post('/cart/update', json={'product_id': 1, 'qty': 'lots'})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Quantity must be a whole number'
        assert _cart(client)['items'][0]['quantity'] == 2

    def test_update_to_zero_removes_line(self, client):
        _add(client, 1)
        _add(client, 2)
        response = client.post('/cart/update', json={'product_id': 1, 'qty': 0})

        items = response.get_json()['cart']['items']
        assert [item['id'] for item in items] == [2]

    def test_remove_and_clear(self, client):
        _add(client, 1)
        _add(client, 2)
        _add(client, 3)

        items = client.post('/cart/remove', json={'product_id': 2}).get_json()['cart']['items']
        assert [item['id'] for item in items] == [1, 3]

        cleared = client.post('/cart/clear', json={}).get_json()['cart']
        assert cleared['items'] == []
        assert cleared['summary']['subtotal'] == '0.00'

    def test_summary_totals(self, client):
        _add(client, 1, 2)
        _add(client, 2, 1)

        summary = _cart(client)['summary']
        assert Decimal(summary['subtotal']) == Decimal('95000')
        assert Decimal(summary['tax']) == Decimal('9500')
        assert Decimal(summary['total']) == Decimal('104500')

    def test_htmx_add_returns_cart_partial(self, client):
        response = client.post('/cart/add', data={'product_id': '1', 'qty': '2'},
                               headers={'HX-Request': 'true'})

        html = response.data.decode()
        assert response.status_code == 200
        assert 'Classic Notebook' in html
        assert 'Rp 55.000' in html
        assert 'hx-swap-oob' in html

    def test_form_add_redirects_to_store(self, client):
        response = client.post('/cart/add', data={'product_id': '1'})
        assert response.status_code == 302


class TestCheckout:

    def test_empty_cart_checkout_rejected(self, app, client):
        response = client.post('/checkout', json={})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Cart is empty. Add some products first.'
        with app.app_context():
            assert get_session().query(Transaction).count() == 0

    def test_checkout_saves_and_clears_cart(self, app, client):
        _add(client, 1, 2)
        _add(client, 2, 1)

        response = client.post('/checkout', json={'customer_name': 'Budi'})

        assert response.status_code == 201
        data = response.get_json()
        assert data['status'] == 'success'
        assert Decimal(data['receipt']['total']) == Decimal('104500')
        assert data['receipt']['item_count'] == 3
        assert data['receipt']['customer_name'] == 'Budi'
        assert data['cart']['items'] == []
        assert _cart(client)['items'] == []

        with app.app_context():
            transaction = get_session().query(Transaction).one()
            assert transaction.id == data['receipt']['transaction_id']
            assert [item['product_id'] for item in transaction.line_items] == [1, 2]

    def test_double_submit_of_same_cart_creates_one_transaction(self, app, client):
        created_before = _created_count()
        _add(client, 1)
        first = client.post('/checkout', json={'idempotency_key': 'k-1'})
        _add(client, 1)
        second = client.post('/checkout', json={'idempotency_key': 'k-1'})

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.get_json()['receipt']['created'] is False
        assert first.get_json()['receipt']['transaction_id'] == second.get_json()['receipt']['transaction_id']
        assert _created_count() - created_before == 1
        with app.app_context():
            assert get_session().query(Transaction).count() == 1

    def test_reused_key_over_new_cart_keeps_cart(self, app, client):
        created_before = _created_count()
        _add(client, 1)
        client.post('/checkout', json={'idempotency_key': 'k-1'})
        _add(client, 8, 3)

        response = client.post('/checkout', json={'idempotency_key': 'k-1'})

        assert response.status_code == 409
        assert 'already processed' in response.get_json()['message']
        assert [(item['id'], item['quantity']) for item in _cart(client)['items']] == [(8, 3)]
        assert _created_count() - created_before == 1
        with app.app_context():
            rows = get_session().query(Transaction).all()
            assert [[item['product_id'] for item in row.line_items] for row in rows] == [[1]]

    def test_html_checkout_shows_receipt(self, client):
        _add(client, 1, 2)
        _add(client, 2, 1)

        response = client.post('/checkout', data={'customer_name': ''})
        assert response.status_code == 302

        html = client.get('/').data.decode()
        assert 'Transaction Saved' in html
        assert 'saved successfully' in html
        assert 'Rp 104.500' in html

        # Receipt is shown once
        assert 'Transaction Saved' not in client.get('/').data.decode()

    def test_htmx_checkout_sets_hx_redirect(self, client):
        _add(client, 3)
        response = client.post('/checkout', data={}, headers={'HX-Request': 'true'})

        assert response.headers.get('HX-Redirect') == '/'


class TestDemoMode:

    def test_missing_schema_shows_demo_catalog(self, bare_app):
        client = bare_app.test_client()
        html = client.get('/').data.decode()

        assert 'Demo mode' in html
        assert 'Store database is not configured' in html
        assert 'Classic Notebook' in html

    def test_checkout_failure_keeps_cart(self, bare_app):
        client = bare_app.test_client()
        _add(client, 1, 2)

        response = client.post('/checkout', json={})

        assert response.status_code == 502
        assert response.get_json()['message'].startswith('Failed to save transaction: ')
        assert _cart(client)['items'][0]['quantity'] == 2


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['database'] == 'connected'

    def test_health_cache_never_fails(self, client):
        response = client.get('/health/cache')
        assert response.status_code == 200
        assert response.get_json()['status'] in ('ok', 'degraded')

    def test_metrics_exposes_store_counters(self, client):
        _add(client, 1)
        client.post('/checkout', json={})

        body = client.get('/metrics').data.decode()
        assert 'storefront_transactions_created_total' in body
        assert 'http_requests_total' in body

    def test_demo_requests_are_counted(self, bare_app):
        client = bare_app.test_client()
        before = REGISTRY.get_sample_value('storefront_catalog_fallback_requests_total') or 0

        client.get('/')
        client.get('/cart', headers=JSON_HEADERS)

        assert REGISTRY.get_sample_value('storefront_catalog_fallback_requests_total') - before == 2
        assert 'storefront_catalog_fallback_requests_total' in client.get('/metrics').data.decode()
