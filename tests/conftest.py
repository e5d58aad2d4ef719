from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from artisan_market.lifecycle.approvals import set_approval, submit_for_approval
from artisan_market.lifecycle.orders import place_order
from artisan_market.models.approval import ApprovalStatus, Product
from artisan_market.store import tables  # noqa: F401
from artisan_market.store.database import Base, build_engine, get_db
from artisan_market.store.repository import ProductRepository

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)

ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "9876543210",
    "email": "asha@example.com",
    "address_line1": "12 Temple Road",
    "city": "Mysuru",
    "state": "Karnataka",
    "zip_code": "570001",
}


def make_items(*prices, artisan_id="artisan-1"):
    prices = prices or (250.0,)
    return [
        {
            "product_id": f"product-{index}",
            "name": f"Clay pot {index}",
            "price": price,
            "quantity": 1,
            "artisan_id": artisan_id,
        }
        for index, price in enumerate(prices, start=1)
    ]


def stock_products(session, *prices, artisan_id="artisan-1", status=ApprovalStatus.APPROVED):
    """Store one product per price and return the matching cart lines."""
    repository = ProductRepository(session)
    cart = []
    for index, price in enumerate(prices or (250.0,), start=1):
        product = Product(
            artisan_id=artisan_id,
            name=f"Clay pot {index}",
            price=price,
            images=[f"clay-pot-{index}.jpg"],
            approval_status=status,
        )
        repository.add(product)
        cart.append({"product_id": product.id, "quantity": 1})
    session.commit()
    return cart


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def new_order(db):
    def _place(user_id="user-1", prices=(250.0,), now=NOW, **fields):
        return place_order(db, user_id, stock_products(db, *prices), ADDRESS, "cod", now=now, **fields)

    return _place


@pytest.fixture
def artisan_data():
    def _data(suffix="1"):
        return {
            "user_id": f"user-artisan-{suffix}",
            "name": f"Ravi Potter {suffix}",
            "email": f"Ravi{suffix}@Example.com",
            "phone": "9000000000",
            "location": {"city": "Jaipur", "state": "Rajasthan"},
        }

    return _data


@pytest.fixture
def pending_artisan(db, artisan_data):
    return submit_for_approval(db, "artisan", artisan_data())


@pytest.fixture
def approved_artisan(db, artisan_data):
    artisan = submit_for_approval(db, "artisan", artisan_data("approved"))
    return set_approval(db, "artisan", artisan.id, "approved", "admin-1", now=NOW)


@pytest.fixture
def client(session_factory):
    from artisan_market.api.main import app
    from artisan_market.utils.temporal import set_client

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    set_client(None)
    yield TestClient(app)
    app.dependency_overrides.clear()
