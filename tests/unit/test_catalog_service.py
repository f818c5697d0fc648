"""
Unit tests for catalog loading, seeding and demo-mode fallback.
"""

import pytest
from sqlalchemy.exc import OperationalError

from storefront.database import get_session
from storefront.models import Product
from storefront.services import catalog_service
from storefront.services.catalog_service import (
    OFFLINE_WARNING, PLACEHOLDER_PRODUCTS, load_catalog, seed_products, get_product, is_missing_schema
)


class FakeCache:
    """In-memory stand-in for CacheService."""

    def __init__(self):
        self.data = {}
        self.sets = 0

    def get(self, module, key):
        return self.data.get((module, key))

    def set(self, module, key, value, ttl=None):
        self.sets += 1
        self.data[(module, key)] = value
        return True


class TestSeeding:

    def test_seed_empty_table(self, session):
        inserted = seed_products(session)

        assert inserted == len(PLACEHOLDER_PRODUCTS)
        assert session.query(Product).count() == len(PLACEHOLDER_PRODUCTS)

    def test_seed_is_skipped_when_table_has_rows(self, session):
        session.add(Product(name='Only Product', price=1000))
        session.commit()

        assert seed_products(session) == 0
        assert session.query(Product).count() == 1


class TestLoadCatalog:

    def test_empty_table_is_seeded_and_returned(self, session):
        result = load_catalog(session)

        assert result.demo_mode is False
        assert result.warning is None
        assert [p['id'] for p in result.products] == [1, 2, 3, 4, 5, 6, 7, 8]
        assert result.products[0]['name'] == 'Classic Notebook'
        assert result.products[0]['price'] == 25000

    def test_existing_rows_are_returned_in_id_order(self, session):
        session.add_all([
            Product(id=10, name='Later', price=2000),
            Product(id=5, name='Earlier', price=1000),
        ])
        session.commit()

        result = load_catalog(session)

        assert [p['name'] for p in result.products] == ['Earlier', 'Later']
        assert result.products[0]['icon'] == 'fas fa-box'

    def test_missing_table_falls_back_with_not_configured_warning(self, bare_app):
        result = load_catalog(get_session())

        assert result.demo_mode is True
        assert result.warning == 'Store database is not configured. Showing demo catalog.'
        assert len(result.products) == len(PLACEHOLDER_PRODUCTS)

    def test_database_error_falls_back_with_offline_warning(self, session, monkeypatch):
        def broken(_session):
            raise OperationalError('SELECT', {}, Exception('connection refused'))

        monkeypatch.setattr(catalog_service, '_read_products', broken)
        result = load_catalog(session)

        assert result.demo_mode is True
        assert result.warning == OFFLINE_WARNING
        assert result.products == PLACEHOLDER_PRODUCTS

    def test_fallback_products_are_copies(self, bare_app):
        result = load_catalog(get_session())
        result.products[0]['name'] = 'Changed'

        assert PLACEHOLDER_PRODUCTS[0]['name'] == 'Classic Notebook'


class TestCatalogCache:

    def test_real_results_are_cached(self, session):
        cache = FakeCache()

        first = load_catalog(session, cache=cache, ttl=60)
        session.query(Product).delete()
        session.commit()
        second = load_catalog(session, cache=cache, ttl=60)

        assert cache.sets == 1
        assert second.products == first.products

    def test_demo_results_are_not_cached(self, bare_app):
        cache = FakeCache()

        result = load_catalog(get_session(), cache=cache)

        assert result.demo_mode is True
        assert cache.sets == 0
        assert cache.data == {}


class TestHelpers:

    def test_get_product(self):
        assert get_product(PLACEHOLDER_PRODUCTS, 2)['name'] == 'Premium Pen Set'
        assert get_product(PLACEHOLDER_PRODUCTS, 99) is None

    @pytest.mark.parametrize('message,expected', [
        ('no such table: products', True),
        ('relation "products" does not exist', True),
        ('connection refused', False),
    ])
    def test_is_missing_schema(self, message, expected):
        error = OperationalError('SELECT', {}, Exception(message))
        assert is_missing_schema(error) is expected
