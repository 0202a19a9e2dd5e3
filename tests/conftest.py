from __future__ import annotations

import dataclasses
import json
from typing import Any, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from storefront.config import Settings
from storefront.main import create_app

API_BASE = "https://api.test/endpoints"
RELAY_BASE = "https://relay.test/get"


def catalog_products() -> List[dict]:
    return [
        {
            "id": 1,
            "product_name": "Gold Card",
            "product_mrp": "59.99",
            "product_offer_price": "49.99",
            "product_feature_image": "https://img.test/gold.jpg",
            "product_gallery1": "https://img.test/gold-1.jpg",
            "product_gallery2": "",
            "product_gallery3": "https://img.test/gold-3.jpg",
            "long_description": "Gold plated NFC card",
            "stock_quantity": 10,
        },
        {
            "id": 2,
            "name": "Classic Black",
            "slug": "classic-black",
            "sku": "NFC-BLK",
            "price": 29.99,
            "original_price": 29.99,
            "images": [{"image_url": "https://img.test/black.jpg", "is_primary": True}],
            "is_in_stock": True,
            "stock_quantity": 50,
            "rating": 4.8,
            "total_reviews": 124,
            "features": ["Matte finish", "Scratch resistant"],
        },
        {
            "id": 3,
            "product_name": "Personal Style",
            "product_offer_price": "19.99",
            "in_stock": "0",
        },
    ]


class FakeBackend:
    """MockTransport handler standing in for the remote API and the CORS relay."""

    def __init__(self, products: Optional[List[dict]] = None):
        self.products = products if products is not None else catalog_products()
        self.direct = "ok"  # ok | error | status | html | fail_envelope
        self.relay = "ok"  # ok | error
        self.order_response: Any = (200, {"success": True, "message": "Order created", "order_id": "ORD-1001"})
        self.categories_response: Any = (200, {"success": True, "data": [
            {"id": 1, "name": "NFC Cards", "slug": "nfc-cards", "product_count": 3},
        ]})
        self.contact_response: Any = (200, {"success": True, "message": "Message received"})
        self.requests: List[httpx.Request] = []

    def calls(self, host: Optional[str] = None, path_suffix: Optional[str] = None) -> List[httpx.Request]:
        out = self.requests
        if host:
            out = [r for r in out if r.url.host == host]
        if path_suffix:
            out = [r for r in out if r.url.path.endswith(path_suffix)]
        return out

    def envelope(self) -> dict:
        return {"success": True, "message": "", "data": self.products}

    @staticmethod
    def respond(request: httpx.Request, outcome: Any) -> httpx.Response:
        if outcome == "error":
            raise httpx.ConnectError("connection refused", request=request)
        status, body = outcome
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "relay.test":
            if self.relay == "error":
                raise httpx.ConnectError("relay down", request=request)
            return httpx.Response(200, json={"contents": json.dumps(self.envelope())})

        path = request.url.path
        if path.endswith("/products.php"):
            if self.direct == "error":
                raise httpx.ConnectError("blocked by CORS", request=request)
            if self.direct == "status":
                return httpx.Response(503, text="Service Unavailable")
            if self.direct == "html":
                return httpx.Response(200, text="<html>blocked</html>")
            if self.direct == "fail_envelope":
                return httpx.Response(200, json={"success": False, "message": "nope", "data": None})
            return httpx.Response(200, json=self.envelope())
        if "/orders.php" in path:
            return self.respond(request, self.order_response)
        if path.endswith("/general.php/categories"):
            return self.respond(request, self.categories_response)
        if path.endswith("/support.php/contact"):
            return self.respond(request, self.contact_response)
        return httpx.Response(404, json={"success": False, "message": "not found"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url=API_BASE, cors_relay_url=RELAY_BASE, log_level="WARNING")


@pytest.fixture
def http(backend) -> httpx.Client:
    with httpx.Client(transport=httpx.MockTransport(backend)) as client:
        yield client


@pytest.fixture
def make_client(backend, settings):
    def _make(**overrides) -> TestClient:
        s = dataclasses.replace(settings, **overrides)
        app = create_app(s, transport=httpx.MockTransport(backend))
        return TestClient(app)
    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()
