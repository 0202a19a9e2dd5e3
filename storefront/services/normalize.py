from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, List, Optional

from storefront.schemas import PLACEHOLDER_IMAGE, Product, ProductImage

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown Product"
DEFAULT_RATING = 4.5
DEFAULT_STOCK_QUANTITY = 100
GALLERY_SLOTS = ("product_gallery1", "product_gallery2", "product_gallery3", "product_gallery4")

# fields only the newer catalog API sends
CATALOG_FIELDS = ("product_name", "product_mrp", "product_offer_price", "product_feature_image") + GALLERY_SLOTS

FALSE_STRINGS = {"0", "false", "no", "off", ""}


def slugify_name(name: str) -> str:
    return re.sub(r"\s+", "-", (name or "").strip().lower())


def first_present(raw: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = raw.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


def to_float(x) -> Optional[float]:
    if x is None:
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def to_int(x) -> Optional[int]:
    v = to_float(x)
    return int(v) if v is not None else None


def to_bool(x) -> bool:
    if isinstance(x, str):
        return x.strip().lower() not in FALSE_STRINGS
    return bool(x)


def payload_shape(raw: Dict[str, Any]) -> str:
    """
    'catalog' for the product_* field set, 'legacy' for name/price/images[].
    A non-empty images[] list makes a payload legacy even when catalog fields
    are present too.
    """
    images = raw.get("images")
    if isinstance(images, list) and images:
        return "legacy"
    if any(k in raw for k in CATALOG_FIELDS):
        return "catalog"
    return "legacy"


def legacy_images(items: List[Any], name: str) -> List[ProductImage]:
    out: List[ProductImage] = []
    for item in items:
        if isinstance(item, str):
            item = {"url": item}
        if not isinstance(item, dict):
            continue
        url = first_present(item, "url", "image_url", "src")
        if not url:
            continue
        order = to_int(item.get("sort_order"))
        out.append(ProductImage(
            url=str(url),
            is_primary=to_bool(item.get("is_primary", False)),
            alt_text=str(item.get("alt_text") or name),
            sort_order=order if order is not None and order >= 0 else len(out),
        ))
    return out


def gallery_images(raw: Dict[str, Any], name: str) -> List[ProductImage]:
    out: List[ProductImage] = []
    feature = first_present(raw, "product_feature_image")
    if feature:
        out.append(ProductImage(url=str(feature), is_primary=True, alt_text=name, sort_order=0))

    slots = [str(raw[k]) for k in GALLERY_SLOTS if first_present(raw, k)]
    for n, url in enumerate(slots, start=1):
        out.append(ProductImage(
            url=url,
            is_primary=False,
            alt_text=f"{name} - Image {n + 1}",
            sort_order=n,
        ))
    return out


def primary_image_of(images: List[ProductImage], raw: Dict[str, Any]) -> str:
    for img in images:
        if img.is_primary:
            return img.url
    if images:
        return images[0].url
    return str(first_present(raw, "primary_image", "image") or PLACEHOLDER_IMAGE)


def parse_features(x) -> List[str]:
    if isinstance(x, str):
        return [line.strip() for line in x.splitlines() if line.strip()]
    if isinstance(x, list):
        return [str(f).strip() for f in x if f is not None and str(f).strip()]
    return []


def normalize_product(raw: Dict[str, Any], default_in_stock: bool = True) -> Product:
    shape = payload_shape(raw)

    name = str(first_present(raw, "product_name", "name") or UNKNOWN_NAME)
    price = to_float(first_present(raw, "product_offer_price", "price", "sale_price")) or 0.0
    price = max(price, 0.0)
    mrp = to_float(first_present(raw, "product_mrp", "original_price", "compare_price"))

    if shape == "catalog":
        images = gallery_images(raw, name)
    else:
        raw_images = raw.get("images")
        images = legacy_images(raw_images if isinstance(raw_images, list) else [], name)

    slug = str(first_present(raw, "slug") or slugify_name(name))
    raw_id = first_present(raw, "id")
    raw_sku = first_present(raw, "sku")
    pid = str(raw_id) if raw_id is not None else str(raw_sku or slug)
    sku = str(raw_sku) if raw_sku is not None else f"SKU-{pid}"

    stock_flag = first_present(raw, "is_in_stock", "in_stock")
    in_stock = to_bool(stock_flag) if stock_flag is not None else default_in_stock

    quantity = to_int(first_present(raw, "stock_quantity"))
    if quantity is None:
        quantity = DEFAULT_STOCK_QUANTITY

    rating = to_float(first_present(raw, "rating"))
    if rating is None:
        rating = DEFAULT_RATING

    product = Product(
        id=pid,
        name=name,
        slug=slug,
        description=str(first_present(raw, "long_description", "description", "short_description") or ""),
        short_description=str(first_present(raw, "short_description") or ""),
        price=price,
        original_price=mrp if mrp is not None and mrp > price else None,
        sku=sku,
        category_id=to_int(first_present(raw, "category_id")) or 1,
        category_name=str(first_present(raw, "category_name") or "NFC Cards"),
        category_slug=str(first_present(raw, "category_slug") or "nfc-cards"),
        stock_quantity=max(quantity, 0),
        is_in_stock=in_stock,
        rating=min(max(rating, 0.0), 5.0),
        total_reviews=max(to_int(first_present(raw, "total_reviews", "review_count")) or 0, 0),
        features=parse_features(raw.get("features")),
        images=images,
        primary_image=primary_image_of(images, raw),
    )
    logger.debug("normalized %s product %s (%s)", shape, product.id, product.name)
    return product


def normalize_products(items: Any, default_in_stock: bool = True) -> List[Product]:
    if not isinstance(items, list):
        return []
    return [normalize_product(p, default_in_stock) for p in items if isinstance(p, dict)]
