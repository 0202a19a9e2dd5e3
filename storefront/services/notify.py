from __future__ import annotations

import html
import logging

import resend

from storefront.config import Settings
from storefront.schemas import OrderConfirmation

logger = logging.getLogger(__name__)


def send_order_email(order: OrderConfirmation, settings: Settings) -> bool:
    """Confirmation email through Resend. Returns False when skipped or failed."""
    if not settings.email_enabled:
        # Don't crash if env not set yet
        return False

    resend.api_key = settings.resend_api_key
    params: resend.Emails.SendParams = {
        "from": settings.resend_from,
        "to": [order.email],
        "subject": f"Your NFC card order {order.order_number}",
        "html": f"""
        <p>Hi {html.escape(order.customer_name)},</p>
        <p>Thanks for your order <strong>{html.escape(order.order_number)}</strong>:
        {order.quantity} × {html.escape(order.product_name)}, total <strong>${order.total:,.2f}</strong>
        ({order.payment_label}).</p>
        <p>It will ship to {html.escape(order.address)}.</p>
        <p>If you have questions, reply to this email.</p>
        """,
    }
    try:
        resend.Emails.send(params)
    except Exception as e:
        # order is already placed by now
        logger.error("Order email for %s failed: %s", order.order_number, e)
        return False
    return True
