"""
Shared fixtures: an in-memory MongoDB (mongomock), service instances wired to
it, and a TestClient with the store and settings dependencies overridden.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import EntityStore, get_store
from drones import DroneService
from main import app
from notifications import NotificationService
from orders import OrderService
from realtime import Broadcaster


@pytest.fixture
def store():
    s = EntityStore(mongomock.MongoClient().foodfast_test)
    s.ensure_indexes()
    return s


@pytest.fixture
def settings():
    s = Settings()
    s.shipping_fee = 15000
    s.tax_percent = 10
    s.notify_on_status_change = True
    s.drone_exclusive_claims = False
    s.vnpay_url = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
    s.vnpay_tmn_code = "TESTTMN1"
    s.vnpay_hash_secret = "TESTSECRETKEY"
    s.vnpay_return_url = "http://localhost:5173/payment-callback"
    s.vnpay_ip_addr = "127.0.0.1"
    return s


@pytest.fixture
def broadcaster():
    return Broadcaster()


@pytest.fixture
def notifications(store):
    return NotificationService(store)


@pytest.fixture
def orders(store, notifications, broadcaster, settings):
    return OrderService(store, notifications, broadcaster, settings)


@pytest.fixture
def drones(store, broadcaster, settings):
    return DroneService(store, broadcaster, settings)


@pytest.fixture
def client(store, settings):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def order_body(**overrides):
    body = {
        "customerName": "Nguyen Van A",
        "customerPhone": "0901234567",
        "restaurantId": "SweetDreams",
        "items": [{"productId": "banh-donut", "name": "Bánh Donut", "quantity": 2, "price": 25000}],
    }
    body.update(overrides)
    return body
