from __future__ import annotations

import logging
from typing import Optional

import stripe

from storefront.config import Settings
from storefront.schemas import OrderConfirmation

logger = logging.getLogger(__name__)


def create_payment_session(order: OrderConfirmation, success_url: str, cancel_url: str, settings: Settings) -> Optional[str]:
    """
    Stripe Checkout URL for an order placed with online payment, or None when
    Stripe isn't configured or refused the session.
    """
    if not settings.stripe_enabled:
        return None

    stripe.api_key = settings.stripe_secret_key
    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": f"{order.product_name} x {order.quantity}"},
                    # Stripe expects amount in cents
                    "unit_amount": int(round(order.total * 100)),
                },
                "quantity": 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=order.email,
            metadata={"order_number": order.order_number},
        )
    except Exception as e:
        logger.error("Stripe session error for order %s: %s", order.order_number, e)
        return None
    return session.url
