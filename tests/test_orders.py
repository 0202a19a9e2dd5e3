from __future__ import annotations

import json
import re
from datetime import datetime, timezone

import pytest

from storefront.schemas import BillingForm, CheckoutSession
from storefront.services.api import ApiClient
from storefront.services.normalize import normalize_product
from storefront.services.orders import (
    CheckoutAttempt,
    CheckoutState,
    build_order_payload,
    compute_totals,
    fallback_order_number,
    get_order,
    get_orders,
    validate_billing,
)
from storefront.services.report import money

from conftest import API_BASE, catalog_products


def good_form(**overrides) -> BillingForm:
    data = dict(
        first_name="Jane",
        last_name="Doe",
        email="jane@example.com",
        phone="+1 (555) 123-4567",
        address="1 Main St",
        city="Springfield",
        state="IL",
        zip_code="62701",
    )
    data.update(overrides)
    return BillingForm(**data)


@pytest.fixture
def session() -> CheckoutSession:
    return CheckoutSession(product=normalize_product(catalog_products()[1]), quantity=2)


@pytest.fixture
def api(http) -> ApiClient:
    return ApiClient(http, API_BASE)


def test_valid_form_has_no_errors():
    assert validate_billing(good_form()) == {}


def test_every_required_field_is_reported():
    errors = validate_billing(BillingForm())
    assert errors == {
        "first_name": "First name is required",
        "last_name": "Last name is required",
        "email": "Email is required",
        "phone": "Phone number is required",
        "address": "Address is required",
        "city": "City is required",
        "state": "State is required",
        "zip_code": "ZIP code is required",
    }


@pytest.mark.parametrize("email", ["jane", "jane@example", "jane @example.com", "@example.com"])
def test_bad_email(email):
    assert validate_billing(good_form(email=email))["email"] == "Please enter a valid email address"


@pytest.mark.parametrize("phone", ["abc", "0123456", "1" * 17])
def test_bad_phone(phone):
    assert validate_billing(good_form(phone=phone))["phone"] == "Please enter a valid phone number"


def test_totals_for_two_cards():
    totals = compute_totals(29.99, 2, 0.08)
    assert totals.subtotal == pytest.approx(59.98)
    assert totals.tax == pytest.approx(4.7984)
    assert totals.total == pytest.approx(64.7784)
    assert money(totals.total) == "$64.78"


def test_fallback_order_number_format():
    number = fallback_order_number(datetime(2025, 3, 1, tzinfo=timezone.utc))
    assert re.fullmatch(r"NFC2025\d{6}", number)


def test_order_payload(session):
    form = good_form(payment_mode="online")
    payload = build_order_payload(session, form, compute_totals(29.99, 2, 0.08))
    assert payload == {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "+1 (555) 123-4567",
        "shipping_address": "1 Main St, Springfield, IL 62701, United States",
        "total_amount": 64.78,
        "order_data": "Product: Classic Black, Quantity: 2, Payment: online",
        "order_status": "pending",
    }


def test_invalid_form_never_reaches_network(session, api, backend):
    attempt = CheckoutAttempt(session, 0.08)
    assert attempt.submit(api, good_form(email="")) is CheckoutState.IDLE
    assert attempt.errors["email"] == "Email is required"
    assert attempt.confirmation is None
    assert backend.requests == []


def test_successful_submission(session, api, backend):
    attempt = CheckoutAttempt(session, 0.08)
    assert attempt.submit(api, good_form()) is CheckoutState.SUCCEEDED

    order = attempt.confirmation
    assert order.order_number == "ORD-1001"
    assert order.customer_name == "Jane Doe"
    assert order.quantity == 2
    assert order.total == pytest.approx(64.7784)
    assert order.payment_label == "Cash on Delivery"

    sent = backend.calls(path_suffix="/orders.php")
    assert len(sent) == 1
    assert sent[0].method == "POST"
    assert sent[0].url.params["action"] == "create"
    assert json.loads(sent[0].content)["total_amount"] == 64.78


def test_order_number_found_under_data(session, api, backend):
    backend.order_response = (200, {"success": True, "data": {"orderNumber": "D-77"}})
    attempt = CheckoutAttempt(session, 0.08)
    attempt.submit(api, good_form())
    assert attempt.confirmation.order_number == "D-77"


def test_missing_order_number_is_generated(session, api, backend):
    backend.order_response = (200, {"success": True, "message": "Order created"})
    attempt = CheckoutAttempt(session, 0.08)
    attempt.submit(api, good_form())
    assert re.fullmatch(r"NFC\d{4}\d{6}", attempt.confirmation.order_number)


@pytest.mark.parametrize("response, message", [
    ((200, {"success": False, "message": "Out of stock"}), "Failed to process order: Out of stock"),
    ((200, {"success": False}), "Failed to process order: Please try again."),
    ((500, {"success": False, "message": "Database down"}), "Failed to process order: Database down"),
    ((200, "<html>"), "Failed to process order: Invalid response from server"),
    ("error", "Failed to process order: Network error reaching the API"),
])
def test_failed_submission(session, api, backend, response, message):
    backend.order_response = response
    attempt = CheckoutAttempt(session, 0.08)
    assert attempt.submit(api, good_form()) is CheckoutState.FAILED
    assert attempt.error_message == message
    assert attempt.confirmation is None


def test_retry_after_failure(session, api, backend):
    backend.order_response = "error"
    attempt = CheckoutAttempt(session, 0.08)
    attempt.submit(api, good_form())

    backend.order_response = (200, {"success": True, "order_id": "ORD-2"})
    retry = CheckoutAttempt(attempt.session, 0.08)
    assert retry.submit(api, good_form()) is CheckoutState.SUCCEEDED
    assert retry.confirmation.order_number == "ORD-2"


def test_quantity_cannot_exceed_stock():
    product = normalize_product({"name": "Rare", "stock_quantity": 2})
    with pytest.raises(ValueError):
        CheckoutSession(product=product, quantity=3)


def test_order_reads(api, backend):
    backend.order_response = (200, {"success": True, "data": [{"id": 1}]})
    assert get_orders(api).data == [{"id": 1}]
    get_order(api, "42")
    assert [r.url.path for r in backend.requests] == ["/endpoints/orders.php", "/endpoints/orders.php/42"]


def test_zero_stock_cannot_be_checked_out():
    product = normalize_product({"name": "Empty Card", "price": 10, "stock_quantity": 0})
    assert product.is_in_stock
    assert not product.purchasable
    with pytest.raises(ValueError):
        CheckoutSession(product=product, quantity=1)
