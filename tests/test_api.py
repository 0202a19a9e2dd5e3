from __future__ import annotations

import json

import httpx
import pytest

from storefront.services.api import ApiClient, ApiEnvelope, ApiError


def make_api(handler) -> ApiClient:
    return ApiClient(httpx.Client(transport=httpx.MockTransport(handler)), "https://api.test/endpoints/")


def test_post_sends_json_and_parses_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["accept"] = request.headers["accept"]
        return httpx.Response(200, json={"success": True, "message": "ok", "data": {"id": 5}, "order_id": "A1"})

    env = make_api(handler).post("/orders.php", {"name": "Jane"}, params={"action": "create"})

    assert seen["url"] == "https://api.test/endpoints/orders.php?action=create"
    assert seen["body"] == {"name": "Jane"}
    assert seen["accept"] == "application/json"
    assert env.success
    assert env.message == "ok"
    assert env.data == {"id": 5}
    assert env.extra == {"order_id": "A1"}


def test_http_error_uses_server_message():
    api = make_api(lambda r: httpx.Response(400, json={"success": False, "message": "Bad email"}))
    with pytest.raises(ApiError) as exc:
        api.get("/orders.php")
    assert exc.value.message == "Bad email"
    assert exc.value.status == 400


def test_http_error_without_body():
    api = make_api(lambda r: httpx.Response(500, text="oops"))
    with pytest.raises(ApiError, match="HTTP error! status: 500"):
        api.get("/orders.php")


def test_non_json_body():
    api = make_api(lambda r: httpx.Response(200, text="<html></html>"))
    with pytest.raises(ApiError, match="Invalid response from server"):
        api.get("/orders.php")


def test_non_object_json_body():
    api = make_api(lambda r: httpx.Response(200, json=[1, 2]))
    with pytest.raises(ApiError, match="Invalid response from server"):
        api.get("/orders.php")


def test_transport_failure_keeps_cause():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(ApiError) as exc:
        make_api(handler).delete("/orders.php/1")
    assert isinstance(exc.value.cause, httpx.ConnectTimeout)


def test_lookup_prefers_top_level_then_data():
    env = ApiEnvelope.from_json({"success": True, "data": {"orderNumber": "D1", "order_id": "D2"}, "order_number": "T1"})
    assert env.lookup("order_id", "orderNumber", "order_number") == "T1"

    env = ApiEnvelope.from_json({"success": True, "data": {"orderNumber": "D1"}, "order_id": ""})
    assert env.lookup("order_id", "orderNumber") == "D1"

    assert ApiEnvelope.from_json({"success": True, "data": [1]}).lookup("order_id") is None
