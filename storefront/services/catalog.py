from __future__ import annotations

import logging
from typing import List

from storefront.schemas import Category
from storefront.services.api import ApiClient, ApiError

logger = logging.getLogger(__name__)

CATEGORIES_PATH = "/general.php/categories"

ALL_PRODUCTS = Category(id=0, name="All Products", slug="all")

FALLBACK_CATEGORIES = [
    ALL_PRODUCTS,
    Category(id=1, name="NFC Cards", slug="nfc-cards"),
    Category(id=2, name="Smart Cards", slug="smart-cards"),
    Category(id=3, name="RFID Tags", slug="rfid-tags"),
    Category(id=4, name="Accessories", slug="accessories"),
]


def get_categories(api: ApiClient) -> List[Category]:
    """Shop filter buttons. Always starts with 'All Products'."""
    try:
        env = api.get(CATEGORIES_PATH)
    except ApiError as e:
        logger.error("Error fetching categories: %s", e)
        return [ALL_PRODUCTS]

    if not env.success or not isinstance(env.data, list):
        logger.warning("Categories endpoint returned no data, using fallback list")
        return list(FALLBACK_CATEGORIES)

    categories = [ALL_PRODUCTS]
    for c in env.data:
        if not isinstance(c, dict) or c.get("id") is None:
            continue
        try:
            categories.append(Category(
                id=int(c["id"]),
                name=str(c.get("name") or ""),
                slug=str(c.get("slug") or ""),
                product_count=int(c.get("product_count") or 0),
            ))
        except (TypeError, ValueError):
            logger.warning("Skipping malformed category: %r", c)
    return categories
