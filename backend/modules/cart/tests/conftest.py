# backend/modules/cart/tests/conftest.py

import pytest
from decimal import Decimal
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base, get_db
from core.key_value_store import InMemoryKeyValueStore
from modules.cart.models.catalog_models import CatalogEntry
from modules.cart.routes.cart_routes import router as cart_router
from modules.cart.services.cart_service import CartService
from modules.cart.services.catalog_service import CatalogItem, InMemoryCatalog
from modules.cart.services.pricing_service import CatalogRef, LineItem, PricingConfig


def make_line(line_id, price, quantity=1, item_type="menu_item"):
    """Build a priced line item for pricing tests"""
    return LineItem(
        id=line_id,
        catalog_ref=CatalogRef(item_type=item_type, item_id=line_id),
        quantity=quantity,
        unit_price=Decimal(str(price)),
    )


@pytest.fixture
def test_engine():
    """Create a test database engine"""
    # Use in-memory SQLite for testing
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session(test_engine):
    """Create a database session for testing"""
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def pricing_config():
    return PricingConfig(
        free_delivery_threshold=Decimal("500"),
        delivery_fee=Decimal("50"),
        currency="BDT",
    )


@pytest.fixture
def catalog():
    return InMemoryCatalog([
        CatalogItem(id="m-biryani", item_type="menu_item", name="Kacchi Biryani", price=Decimal("330")),
        CatalogItem(id="m-platter", item_type="menu_item", name="Grill Platter", price=Decimal("650")),
        CatalogItem(id="m-latte", item_type="menu_item", name="Iced Latte", price=Decimal("450")),
        CatalogItem(id="m-soup", item_type="menu_item", name="Lentil Soup", price=Decimal("50")),
        CatalogItem(
            id="m-seasonal", item_type="menu_item", name="Mango Lassi",
            price=Decimal("120"), is_available=False,
        ),
        CatalogItem(id="d-fuchka", item_type="dish", name="Fuchka", price=Decimal("199.99")),
    ])


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def cart_service(store, catalog):
    return CartService(store, catalog, owner_id="user-1")


@pytest.fixture
def seeded_catalog(db_session):
    """Catalog rows for API tests"""
    entries = [
        CatalogEntry(item_type="menu_item", item_id="m-biryani", name="Kacchi Biryani", price=Decimal("330.00")),
        CatalogEntry(item_type="menu_item", item_id="m-platter", name="Grill Platter", price=Decimal("650.00")),
        CatalogEntry(item_type="menu_item", item_id="m-latte", name="Iced Latte", price=Decimal("450.00")),
        CatalogEntry(item_type="dish", item_id="d-fuchka", name="Fuchka", price=Decimal("199.99")),
    ]
    db_session.add_all(entries)
    db_session.commit()
    return entries


@pytest.fixture
def client(db_session):
    app = FastAPI()
    app.include_router(cart_router)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
