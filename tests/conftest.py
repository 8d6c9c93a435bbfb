import pytest
from decimal import Decimal

from pdv import create_app
from pdv.database import create_all, drop_all, get_session
from pdv.domain import DraftLine, DraftOrder, PaymentDetails
from pdv.models import Product


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite, no Redis)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(autouse=True)
def schema(app):
    """Fresh tables for every test."""
    create_all()
    yield
    get_session().remove()
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def coffee(session):
    """Product priced 10.00 with 20 units in stock."""
    product = Product(code='CAF-500', name='Café 500g', unit='UNID', price=Decimal('10.00'), stock=Decimal('20'), active=True)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def sugar(session):
    """Product priced 5.49 with 4 units in stock."""
    product = Product(code='ACU-1K', name='Açúcar 1kg', unit='UNID', price=Decimal('5.49'), stock=Decimal('4'), active=True)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def inactive_product(session):
    product = Product(code='OLD-01', name='Produto fora de linha', price=Decimal('3.00'), stock=Decimal('10'), active=False)
    session.add(product)
    session.commit()
    return product


def _make_line(product_id=1, qty='3', unit_price='10.00', original_price=None, name='Café 500g'):
    return DraftLine(
        product_id=product_id,
        product_name=name,
        qty=Decimal(qty),
        unit_price=Decimal(unit_price),
        original_price=Decimal(original_price or unit_price),
    )


@pytest.fixture(scope='function')
def make_line():
    """Factory for DraftLine objects (defaults: 3 x 10.00)."""
    return _make_line


@pytest.fixture(scope='function')
def draft():
    """Cart with one line: 3 x 10.00, no discount, no freight."""
    return DraftOrder(seller_id='V01', seller_name='Vendedor Um', lines=[_make_line()])


@pytest.fixture(scope='function')
def coffee_draft(coffee):
    """Cart with 3 x coffee at catalog price, paid 30.00 in cash."""
    return DraftOrder(
        seller_id='V01',
        seller_name='Vendedor Um',
        client_name='Cliente Balcão',
        lines=[_make_line(product_id=coffee.id)],
        payments=PaymentDetails(cash=Decimal('30.00')),
    )
