from __future__ import annotations

import logging
from typing import List

from storefront.schemas import ContactRequest
from storefront.services.api import ApiClient, ApiEnvelope

logger = logging.getLogger(__name__)

CONTACT_PATH = "/support.php/contact"


def validate_contact_form(data: ContactRequest) -> List[str]:
    errors: List[str] = []

    if len(data.name.strip()) < 2:
        errors.append("Name must be at least 2 characters long")

    if "@" not in data.email:
        errors.append("Valid email address is required")

    if len(data.subject.strip()) < 5:
        errors.append("Subject must be at least 5 characters long")

    if len(data.message.strip()) < 10:
        errors.append("Message must be at least 10 characters long")

    if data.phone and len(data.phone) < 10:
        errors.append("Phone number must be at least 10 digits")

    return errors


def create_contact_message(api: ApiClient, data: ContactRequest) -> ApiEnvelope:
    logger.info("Submitting contact message (%s) from %s", data.category, data.email.strip())
    return api.post(CONTACT_PATH, data.to_payload())
