from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from storefront.config import Settings
from storefront.schemas import Pagination, Product, ProductDetail, ProductPage
from storefront.services.api import DEFAULT_HEADERS, ApiEnvelope, ApiError, parse_envelope
from storefront.services.normalize import normalize_product, normalize_products, slugify_name

logger = logging.getLogger(__name__)

PRODUCTS_PATH = "/products.php"
FEATURED_LIMIT = 6
RELATED_LIMIT = 4
DEFAULT_PAGE_SIZE = 20

SORT_OPTIONS = [
    {"key": "name-ASC", "sort": "name", "order": "ASC", "label": "Name"},
    {"key": "price-ASC", "sort": "price", "order": "ASC", "label": "Price: Low to High"},
    {"key": "price-DESC", "sort": "price", "order": "DESC", "label": "Price: High to Low"},
    {"key": "rating-DESC", "sort": "rating", "order": "DESC", "label": "Rating: High to Low"},
    {"key": "created_at-DESC", "sort": "created_at", "order": "DESC", "label": "Newest First"},
]


@dataclass
class ProductQuery:
    limit: Optional[int] = None
    page: Optional[int] = None
    search: Optional[str] = None
    category: Optional[str] = None
    sort: Optional[str] = None
    order: Optional[str] = None
    product_id: Optional[str] = None

    def to_params(self) -> List[tuple]:
        # parameter names are the remote API's, keep them literal
        params: List[tuple] = [("action", "read")]
        if self.limit:
            params.append(("limit", str(self.limit)))
        if self.page and self.page > 1:
            params.append(("page", str(self.page)))
        if self.search:
            params.append(("search", self.search))
        if self.category:
            params.append(("category", self.category))
        if self.sort:
            params.append(("sort", self.sort))
        if self.order:
            params.append(("order", self.order))
        if self.product_id:
            params.append(("id", self.product_id))
        return params


def relay_url_for(relay_base: str, url: str) -> str:
    return f"{relay_base}?url={quote(url, safe='')}"


def require_product_list(env: ApiEnvelope) -> ApiEnvelope:
    if not env.success:
        raise ApiError(env.message or "API reported success: false")
    if not isinstance(env.data, list):
        raise ApiError("Invalid API response structure")
    return env


def fetch_direct(client: httpx.Client, url: str) -> ApiEnvelope:
    try:
        r = client.get(url, headers=DEFAULT_HEADERS)
    except httpx.HTTPError as e:
        raise ApiError("Network error reaching the API", cause=e)
    return require_product_list(parse_envelope(r))


def fetch_via_relay(client: httpx.Client, url: str, relay_base: str) -> ApiEnvelope:
    try:
        r = client.get(relay_url_for(relay_base, url))
    except httpx.HTTPError as e:
        raise ApiError("Network error reaching the CORS relay", cause=e)
    if not r.is_success:
        raise ApiError(f"CORS relay returned HTTP {r.status_code}", status=r.status_code)

    try:
        wrapper = r.json()
        contents = wrapper.get("contents") if isinstance(wrapper, dict) else None
        if not isinstance(contents, str):
            raise ApiError("CORS relay response has no contents")
        body = json.loads(contents)
    except ValueError as e:
        raise ApiError("CORS relay contents were not JSON", cause=e)
    return require_product_list(ApiEnvelope.from_json(body))


def fetch_with_fallback(client: httpx.Client, url: str, relay_base: str) -> Optional[ApiEnvelope]:
    """
    Direct request first; on any failure the same URL once through the relay.
    Returns None when both fail. The two attempts never overlap.
    """
    try:
        return fetch_direct(client, url)
    except ApiError as e:
        logger.warning("Direct fetch failed, trying CORS proxy: %s (cause: %r)", e, e.cause)

    try:
        env = fetch_via_relay(client, url, relay_base)
        logger.info("Fetched via CORS proxy: %s", url)
        return env
    except ApiError as e:
        logger.error("CORS proxy also failed: %s (cause: %r)", e, e.cause)
        return None


def match_product(items: List[Dict[str, Any]], identifier: str) -> Optional[Dict[str, Any]]:
    """id, then slug, then sku, then slugified name; first match wins."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None

    checks = (
        lambda p: p.get("id") is not None and str(p.get("id")) == identifier,
        lambda p: p.get("slug") == identifier,
        lambda p: p.get("sku") == identifier,
        lambda p: slugify_name(p.get("product_name") or p.get("name") or "") == identifier,
    )
    for check in checks:
        for p in items:
            if check(p):
                return p
    return None


class ProductService:
    def __init__(self, client: httpx.Client, settings: Settings):
        self.client = client
        self.settings = settings

    def products_url(self, query: ProductQuery) -> str:
        base = f"{self.settings.api_base_url}{PRODUCTS_PATH}"
        return str(httpx.URL(base, params=query.to_params()))

    def _load(self, query: ProductQuery) -> Optional[List[Dict[str, Any]]]:
        url = self.products_url(query)
        t = time.time()
        env = fetch_with_fallback(self.client, url, self.settings.cors_relay_url)
        if env is None:
            return None
        items = [p for p in env.data if isinstance(p, dict)]
        logger.info("FETCH seconds: %s products: %d url: %s", round(time.time() - t, 2), len(items), url)
        return items

    def list_products(self, query: Optional[ProductQuery] = None) -> ProductPage:
        query = query or ProductQuery()
        items = self._load(query)
        per_page = query.limit or DEFAULT_PAGE_SIZE
        page = query.page or 1
        if items is None:
            return ProductPage(
                failed=True,
                pagination=Pagination(current_page=page, per_page=per_page, has_prev=page > 1),
            )

        products = normalize_products(items, self.settings.default_in_stock)
        return ProductPage(
            products=products,
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(len(items) / per_page),
                per_page=per_page,
                total_items=len(items),
                has_next=False,  # the API returns the whole page in one go
                has_prev=page > 1,
            ),
        )

    def featured_products(self, limit: int = FEATURED_LIMIT) -> List[Product]:
        return self.list_products(ProductQuery(limit=limit)).products[:limit]

    def search_products(self, term: str, query: Optional[ProductQuery] = None) -> ProductPage:
        query = query or ProductQuery()
        query.search = term
        return self.list_products(query)

    def products_by_category(self, category: str, query: Optional[ProductQuery] = None) -> ProductPage:
        query = query or ProductQuery()
        query.category = category
        return self.list_products(query)

    def find_product(self, identifier: str) -> Optional[ProductDetail]:
        """Look a product up by id, slug, sku or name. None means not found."""
        items = self._load(ProductQuery())
        if not items:
            return None

        found = match_product(items, identifier)
        if found is None:
            logger.info("Product not found: %r (available ids: %s)", identifier, [p.get("id") for p in items])
            return None

        product = normalize_product(found, self.settings.default_in_stock)
        related = [
            normalize_product(p, self.settings.default_in_stock)
            for p in items
            if p is not found
        ][:RELATED_LIMIT]
        return ProductDetail(product=product, related=related)
