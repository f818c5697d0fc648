import pytest
from decimal import Decimal

from storefront import create_app
from storefront import database
from storefront.database import get_session, create_all, drop_all
from storefront.models import Product, Transaction
from storefront.services.catalog_service import seed_products
from storefront.services.cart_service import Cart, MemoryCartStore


@pytest.fixture(scope='function')
def app():
    """Create application instance with a fresh in-memory database."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
    yield app
    with app.app_context():
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def bare_app():
    """Application whose database has no tables at all."""
    app = create_app('config.TestConfig')
    yield app
    get_session().remove()


@pytest.fixture(scope='function')
def products_only_app():
    """Application with a products table but no transactions table."""
    app = create_app('config.TestConfig')
    Product.__table__.create(bind=database.engine)
    yield app
    get_session().remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope='function')
def catalog(session):
    """Placeholder catalog seeded into the products table."""
    seed_products(session)
    return [p.to_dict() for p in session.query(Product).order_by(Product.id).all()]


@pytest.fixture(scope='function')
def cart_store():
    return MemoryCartStore()


@pytest.fixture(scope='function')
def scenario_cart(cart_store):
    """Notebook x2 + Pen Set x1."""
    cart = Cart(store=cart_store)
    cart.add_item({'id': 1, 'name': 'Classic Notebook', 'price': 25000}, 2)
    cart.add_item({'id': 2, 'name': 'Premium Pen Set', 'price': 45000}, 1)
    return cart


@pytest.fixture(scope='function')
def make_transaction(session):
    """Factory that inserts a transaction row directly."""
    def _make(total=Decimal('110.00'), customer_name=None, items=None, idempotency_key=None):
        subtotal = (Decimal(total) / Decimal('1.1')).quantize(Decimal('0.01'))
        transaction = Transaction(
            subtotal=subtotal,
            tax=Decimal(total) - subtotal,
            total=Decimal(total),
            items=items if items is not None else [
                {'product_id': 1, 'product_name': 'Classic Notebook', 'quantity': 1, 'price': 100, 'subtotal': 100}
            ],
            customer_name=customer_name,
            idempotency_key=idempotency_key,
        )
        session.add(transaction)
        session.commit()
        return transaction
    return _make
