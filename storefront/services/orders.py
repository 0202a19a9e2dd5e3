from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from storefront.schemas import BillingForm, CheckoutSession, OrderConfirmation
from storefront.services.api import ApiClient, ApiError

logger = logging.getLogger(__name__)

ORDERS_PATH = "/orders.php"
ORDER_NUMBER_PREFIX = "NFC"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[1-9][\d]{0,15}$")

REQUIRED_FIELDS = [
    ("first_name", "First name is required"),
    ("last_name", "Last name is required"),
    ("email", "Email is required"),
    ("phone", "Phone number is required"),
    ("address", "Address is required"),
    ("city", "City is required"),
    ("state", "State is required"),
    ("zip_code", "ZIP code is required"),
]


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OrderSubmissionError(Exception):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


@dataclass(frozen=True)
class OrderTotals:
    subtotal: float
    tax: float
    total: float


def validate_billing(form: BillingForm) -> Dict[str, str]:
    """Field name -> message. Empty dict means the form is valid."""
    errors: Dict[str, str] = {}
    for name, message in REQUIRED_FIELDS:
        if not getattr(form, name).strip():
            errors[name] = message

    if form.email and not EMAIL_RE.match(form.email):
        errors["email"] = "Please enter a valid email address"

    if form.phone and not PHONE_RE.match(re.sub(r"\D", "", form.phone)):
        errors["phone"] = "Please enter a valid phone number"
    return errors


def compute_totals(price: float, quantity: int, tax_rate: float) -> OrderTotals:
    subtotal = price * quantity
    tax = subtotal * tax_rate
    return OrderTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)


def fallback_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{ORDER_NUMBER_PREFIX}{now.year}{random.randint(0, 999999):06d}"


def build_order_payload(session: CheckoutSession, form: BillingForm, totals: OrderTotals) -> Dict[str, object]:
    return {
        "name": form.full_name,
        "email": form.email.strip(),
        "phone": form.phone.strip(),
        "shipping_address": form.shipping_address,
        "total_amount": round(totals.total, 2),
        "order_data": (
            f"Product: {session.product.name}, Quantity: {session.quantity}, "
            f"Payment: {form.payment_mode}"
        ),
        "order_status": "pending",
    }


def create_order(api: ApiClient, payload: Dict[str, object]):
    return api.post(ORDERS_PATH, payload, params={"action": "create"})


def get_orders(api: ApiClient):
    return api.get(ORDERS_PATH)


def get_order(api: ApiClient, order_id: str):
    return api.get(f"{ORDERS_PATH}/{order_id}")


class CheckoutAttempt:
    """
    One billing form submission.

    IDLE -> VALIDATING -> SUBMITTING -> SUCCEEDED | FAILED. A validation
    failure drops back to IDLE with `errors` filled in and never touches the
    network. A FAILED attempt leaves the session untouched so the caller can
    show the form again and let the customer resubmit.
    """

    def __init__(self, session: CheckoutSession, tax_rate: float):
        self.session = session
        self.tax_rate = tax_rate
        self.state = CheckoutState.IDLE
        self.errors: Dict[str, str] = {}
        self.error_message: Optional[str] = None
        self.confirmation: Optional[OrderConfirmation] = None

    @property
    def totals(self) -> OrderTotals:
        return compute_totals(self.session.product.price, self.session.quantity, self.tax_rate)

    def validate(self, form: BillingForm) -> bool:
        self.state = CheckoutState.VALIDATING
        self.errors = validate_billing(form)
        if self.errors:
            self.state = CheckoutState.IDLE
            return False
        return True

    def submit(self, api: ApiClient, form: BillingForm) -> CheckoutState:
        if not self.validate(form):
            return self.state

        self.state = CheckoutState.SUBMITTING
        totals = self.totals
        payload = build_order_payload(self.session, form, totals)
        logger.info("Submitting order: %s x%d total=%s", self.session.product.name, self.session.quantity, payload["total_amount"])

        try:
            order_number = self._send(api, payload)
        except OrderSubmissionError as e:
            logger.error("Order processing failed: %s (cause: %r)", e.message, e.cause)
            self.state = CheckoutState.FAILED
            self.error_message = f"Failed to process order: {e.message}"
            return self.state

        self.confirmation = OrderConfirmation(
            order_number=order_number,
            customer_name=form.full_name,
            email=form.email.strip(),
            phone=form.phone.strip(),
            address=form.shipping_address,
            product_name=self.session.product.name,
            quantity=self.session.quantity,
            unit_price=self.session.product.price,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            payment_mode=form.payment_mode,
        )
        self.state = CheckoutState.SUCCEEDED
        logger.info("Order created successfully! Order number: %s", order_number)
        return self.state

    def _send(self, api: ApiClient, payload: Dict[str, object]) -> str:
        try:
            env = create_order(api, payload)
        except ApiError as e:
            raise OrderSubmissionError(e.message or "Please try again.", cause=e)

        if not env.success:
            raise OrderSubmissionError(env.message or "Please try again.")

        order_number = env.lookup("order_id", "orderNumber", "order_number")
        if order_number is None:
            order_number = fallback_order_number()
            logger.info("Server did not return an order number, generated %s", order_number)
        return str(order_number)
