import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from poultry_ledger import create_app
from poultry_ledger import database
from poultry_ledger.domain.records import (
    CartItem, Customer, CustomerType, Order, Product, SaleType, Unit,
)
from poultry_ledger.services.ledger_store import LedgerStore

NOW = datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(scope='function')
def app():
    """Create application instance with a fresh in-memory database."""
    app = create_app('config.TestConfig')
    database.create_all()
    yield app
    database.get_session().remove()
    database.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session bound to the test database."""
    session = database.get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def store(session):
    return LedgerStore(session)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def chicken():
    return Product(id='P-CHICKEN', name='Gà Minh Dư', category='Gà', price=Decimal('100000'), stock=50)


@pytest.fixture
def duck():
    return Product(id='P-DUCK', name='Vịt Xiêm', category='Vịt', price=Decimal('50000'), stock=20,
                   min_stock_threshold=5)


@pytest.fixture
def agency():
    return Customer(id='C-AGENCY', name='Đại lý Anh Ba', type=CustomerType.AGENCY,
                    discount_rate=Decimal('10'), phone='0901234567')


@pytest.fixture
def catalog(store, chicken, duck):
    """Persist the two test products and return their committed records."""
    committed = store.write_atomic(products=[chicken, duck])
    return {product.id: product for product in committed.products}


@pytest.fixture
def registered_agency(store, agency):
    return store.write_atomic(customers=[agency]).customers[0]


@pytest.fixture
def weighed_product(store):
    """A kg-priced product, committed."""
    product = Product(id='P-KG', name='Gà Đông Tảo', category='Gà', price=Decimal('60000'), stock=10,
                      unit=Unit.KG)
    return store.write_atomic(products=[product]).products[0]


def make_order(order_id, debt, date, customer=None, customer_name='Khách lẻ', total=None,
               sale_type=SaleType.RETAIL, product=None):
    """Unpaid (or partly paid) order record for seeding ledgers."""
    total = Decimal(total if total is not None else debt)
    debt = Decimal(debt)
    items = ()
    if product is not None:
        items = (CartItem.from_product(product, 1),)
    return Order(
        id=order_id,
        date=date,
        items=items,
        total=total,
        customer_name=customer.name if customer else customer_name,
        customer_id=customer.id if customer else None,
        sale_type=sale_type,
        paid_amount=total - debt,
        debt=debt,
    )


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def days_ago(now):
    def _days_ago(days, hours=0):
        return now - timedelta(days=days, hours=hours)
    return _days_ago
