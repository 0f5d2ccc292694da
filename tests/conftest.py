# tests/conftest.py
import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import app
from pos.config import Settings
from pos.session import PosSession


class FlakyTransport(httpx.AsyncBaseTransport):
    """Sends requests to the in-process emulator; ``should_fail`` picks the ones answered with 503."""

    def __init__(self, should_fail=None):
        self.inner = httpx.ASGITransport(app=app)
        self.should_fail = should_fail or (lambda request: False)
        self.requests = []

    async def handle_async_request(self, request):
        self.requests.append(request)
        if self.should_fail(request):
            return httpx.Response(503, json={"code": None, "message": "service unavailable"}, request=request)
        return await self.inner.handle_async_request(request)


@pytest.fixture
def api():
    client = TestClient(app)
    client.post("/reset")
    return client


@pytest.fixture
def seed(api):
    """Two categories (one inactive), one supplier and four products; returns the rows by sku."""
    rep = {"Prefer": "return=representation"}
    oli, _ = api.post("/rest/v1/categories", json=[
        {"name": "Oli", "is_active": True},
        {"name": "Lama", "is_active": False},
    ], headers=rep).json()
    ban = api.post("/rest/v1/categories", json={"name": "Ban", "is_active": True}, headers=rep).json()[0]
    sup = api.post("/rest/v1/suppliers", json={"name": "PT Maju", "is_active": True}, headers=rep).json()[0]
    rows = api.post("/rest/v1/products", json=[
        {"name": "Oli Mesin", "sku": "OLI-1", "barcode": "899001", "category_id": oli["id"],
         "supplier_id": sup["id"], "buy_price": 40000, "sell_price": 50000, "stock": 5, "min_stock": 2,
         "is_active": True, "image_url": None},
        {"name": "Ban Dalam", "sku": "BAN-1", "barcode": None, "category_id": ban["id"],
         "supplier_id": None, "buy_price": 20000, "sell_price": 30000, "stock": 3, "min_stock": 3,
         "is_active": True, "image_url": None},
        {"name": "Aki Kering", "sku": "AKI-1", "barcode": None, "category_id": oli["id"],
         "supplier_id": None, "buy_price": 100000, "sell_price": 150000, "stock": 0, "min_stock": 1,
         "is_active": True, "image_url": None},
        {"name": "Rantai Lama", "sku": "RNT-1", "barcode": None, "category_id": ban["id"],
         "supplier_id": None, "buy_price": 1000, "sell_price": 2000, "stock": 0, "min_stock": 5,
         "is_active": False, "image_url": None},
    ], headers=rep).json()
    return {
        "categories": {"oli": oli, "ban": ban},
        "supplier": sup,
        "products": {r["sku"]: r for r in rows},
    }


@pytest.fixture
def make_session():
    def _make(should_fail=None):
        transport = FlakyTransport(should_fail)
        pos = PosSession.from_settings(Settings(), transport=transport)
        return pos, transport
    return _make
