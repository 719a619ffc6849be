import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from omnilearn import config, database
from omnilearn.schemas import CartItem


@pytest.fixture(autouse=True)
def db(monkeypatch):
    mock_db = AsyncMongoMockClient()["omnilearn_test"]
    monkeypatch.setattr(database, "_db", mock_db)
    monkeypatch.setattr(config, "CHECKOUT_GATEWAY_DELAY", 0)
    monkeypatch.setattr(config, "CHECKOUT_VERIFY_DELAY", 0)
    monkeypatch.setattr(config, "GEMINI_API_KEY", None)
    return mock_db


@pytest.fixture
def client():
    from omnilearn.main import app

    with TestClient(app) as c:
        yield c


def make_item(course_id="course-1", price=1000, coupons=None, cart_id=None):
    return CartItem(
        id=course_id,
        title=f"Course {course_id}",
        price=price,
        coupons=coupons or [],
        cart_id=cart_id or f"cart-{course_id}",
    )


def coupon(code, type_, value, id_="cp1"):
    return {"id": id_, "code": code, "type": type_, "value": value, "isActive": True}
