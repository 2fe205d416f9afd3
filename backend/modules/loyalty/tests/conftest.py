# backend/modules/loyalty/tests/conftest.py

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
from modules.cart.services.pricing_service import CatalogRef, LineItem, PricingConfig
from modules.loyalty.models.rewards_models import LoyaltyAccount
from modules.loyalty.routes.loyalty_routes import get_store, router as loyalty_router
from modules.loyalty.services.loyalty_resolver import (
    default_rewards_catalog,
    default_tier_table,
)
from modules.loyalty.services.order_integration import OrderFinalizationService


@pytest.fixture
def test_engine():
    """Create a test database engine"""
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
def tier_table():
    return default_tier_table()


@pytest.fixture
def rewards_catalog():
    return default_rewards_catalog()


@pytest.fixture
def pricing_config():
    return PricingConfig()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def order_lines():
    """Three lines totalling 1430"""
    return [
        LineItem(id=line_id, catalog_ref=CatalogRef("menu_item", line_id), quantity=1, unit_price=Decimal(price))
        for line_id, price in (("m-biryani", "330"), ("m-platter", "650"), ("m-latte", "450"))
    ]


@pytest.fixture
def finalization_service(db_session):
    return OrderFinalizationService(db_session)


@pytest.fixture
def sample_account(db_session):
    """Customer holding 500 points"""
    account = LoyaltyAccount(
        customer_id="cust-1",
        points_balance=500,
        lifetime_points_earned=500,
        lifetime_points_spent=0,
    )
    db_session.add(account)
    db_session.commit()
    db_session.refresh(account)
    return account


@pytest.fixture
def seeded_catalog(db_session):
    db_session.add_all([
        CatalogEntry(item_type="menu_item", item_id="m-biryani", name="Kacchi Biryani", price=Decimal("330.00")),
        CatalogEntry(item_type="menu_item", item_id="m-platter", name="Grill Platter", price=Decimal("650.00")),
        CatalogEntry(item_type="menu_item", item_id="m-latte", name="Iced Latte", price=Decimal("450.00")),
    ])
    db_session.commit()


@pytest.fixture
def client(db_session, store):
    app = FastAPI()
    app.include_router(loyalty_router)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    return TestClient(app)
