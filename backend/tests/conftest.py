"""
Pytest fixtures for textile ERP backend tests.

Every test gets its own app with a fresh in-memory database, so ids start at
1 and the main warehouse is always DEFAULT_WAREHOUSE_ID.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func

from textile_erp import create_app
from textile_erp.extensions import db
from textile_erp.models import (
    Branch,
    Customer,
    InventoryPosition,
    Product,
    ProductionCenter,
    StockTransaction,
    Warehouse,
)
from textile_erp.services import stock_service


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_WAREHOUSE_ID': 1,
        'CREDIT_TERM_DAYS': 30,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def branch(app):
    branch = Branch(code="MAIN", name="Head Office")
    db.session.add(branch)
    db.session.commit()
    return branch


@pytest.fixture(scope='function')
def main_warehouse(branch):
    """Warehouse 1: the invoice stock source."""
    warehouse = Warehouse(id=1, code="WH-MAIN", name="Main Warehouse", branch_id=branch.id)
    db.session.add(warehouse)
    db.session.commit()
    return warehouse


@pytest.fixture(scope='function')
def second_warehouse(main_warehouse):
    warehouse = Warehouse(id=2, code="WH-DYE", name="Dyeing Store")
    db.session.add(warehouse)
    db.session.commit()
    return warehouse


@pytest.fixture(scope='function')
def center(app):
    center = ProductionCenter(code="PC-01", name="Weaving Center")
    db.session.add(center)
    db.session.commit()
    return center


@pytest.fixture(scope='function')
def customer(app):
    customer = Customer(code="C-001", name="Lanka Apparel", customer_type="wholesale", credit_limit=Decimal("5000.00"))
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture(scope='function')
def product(app):
    """Finished fabric: cost 10, price 20."""
    product = Product(
        code="FAB-001",
        name="Cotton Fabric",
        category="fabric",
        unit_of_measure="m",
        standard_cost=Decimal("10.00"),
        standard_price=Decimal("20.00"),
        reorder_level=Decimal("20"),
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def yarn(app):
    yarn = Product(code="YRN-001", name="Cotton Yarn", category="yarn", unit_of_measure="kg")
    db.session.add(yarn)
    db.session.commit()
    return yarn


@pytest.fixture(scope='function')
def stocked(main_warehouse, product):
    """100 units of `product` in the main warehouse."""
    stock_service.adjust_stock(
        product_id=product.id,
        warehouse_id=main_warehouse.id,
        quantity=100,
        direction="in",
        user_id=1,
    )
    return product


def on_hand(warehouse_id: int, product_id: int) -> Decimal:
    return stock_service.get_quantity_on_hand(warehouse_id, product_id)


def count(model) -> int:
    return db.session.query(func.count(model.id)).scalar()


def assert_ledger_matches_positions():
    """SUM(stock_transactions.quantity) per pair must equal quantity_on_hand."""
    ledger = {}
    for tx in db.session.query(StockTransaction).all():
        key = (tx.warehouse_id, tx.product_id)
        ledger[key] = ledger.get(key, Decimal("0")) + Decimal(str(tx.quantity))

    positions = {
        (p.warehouse_id, p.product_id): Decimal(str(p.quantity_on_hand))
        for p in db.session.query(InventoryPosition).all()
    }
    assert set(ledger) == set(positions)
    for key, total in ledger.items():
        assert total == positions[key], key


def role_headers(role: str = "Director", user_id: int = 7) -> dict:
    """Identity headers set by the auth collaborator."""
    return {"X-User-Id": str(user_id), "X-User-Role": role}
