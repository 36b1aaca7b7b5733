import pytest

from orderdesk import create_app
from orderdesk.database import create_all, drop_all, get_session
from orderdesk.services import config_service, order_service, pricing_service


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database per test)."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
        yield app
        get_session().remove()
        drop_all()


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


@pytest.fixture(scope='function')
def pricing_defaults(session):
    """System defaults matching the production configuration, clothing fee 5.00."""
    return config_service.update_system_defaults(
        session,
        product_margin_pct='80',
        shipping_margin_pct='5',
        sample_margin_pct='80',
        accessory_margin_pct='100',
        clothing_flat_fee='5'
    )


@pytest.fixture(scope='function')
def customer(session):
    return order_service.create_client(session, 'Northwind Apparel', 'buying@northwind.example')


@pytest.fixture(scope='function')
def manufacturer(session):
    return order_service.create_manufacturer(session, 'Shenzhen Textile Co')


@pytest.fixture(scope='function')
def order(session, customer, manufacturer):
    return order_service.create_order(
        session, customer.id, manufacturer.id, order_name='Spring drop', order_number='ORD-TEST-0001'
    )


@pytest.fixture(scope='function')
def items(session, pricing_defaults, order):
    """
    Three priced items on one order:

    mug      regular, cost 10, air 50, boat 20, sample 10, qty 100, air
    bottle   regular, cost 20, air 40, qty 50, air
    hoodie   clothing, cost 15, qty 200, boat
    """
    mug = order_service.add_line_item(session, order.id, 'Ceramic mug', quantity=100, selected_shipping_method='air')
    bottle = order_service.add_line_item(session, order.id, 'Steel bottle', quantity=50, selected_shipping_method='air')
    hoodie = order_service.add_line_item(
        session, order.id, 'Hoodie', is_clothing=True, quantity=200, selected_shipping_method='boat'
    )

    pricing_service.submit_manufacturer_costs(
        session, mug.id, product_price='10', shipping_air_price='50', shipping_boat_price='20', sample_fee='10'
    )
    pricing_service.submit_manufacturer_costs(session, bottle.id, product_price='20', shipping_air_price='40')
    pricing_service.submit_manufacturer_costs(session, hoodie.id, product_price='15')

    return {'mug': mug, 'bottle': bottle, 'hoodie': hoodie}
