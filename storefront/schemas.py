"""
Storefront Schemas

Pydantic models for the canonical shapes the pages and checkout consume.
Raw backend payloads never reach these directly; they go through
services.normalize first.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

PLACEHOLDER_IMAGE = "/static/images/placeholder.svg"
LOW_STOCK_THRESHOLD = 5

PaymentMode = Literal["cod", "online"]

PAYMENT_MODE_LABELS = {
    "cod": "Cash on Delivery",
    "online": "Online Payment",
}


class ProductImage(BaseModel):
    url: str = Field(..., description="Absolute or site-relative image URL")
    is_primary: bool = Field(False, description="Whether this is the feature image")
    alt_text: str = Field("", description="Alt text for the image")
    sort_order: int = Field(0, ge=0, description="Display position")


class Product(BaseModel):
    id: str = Field(..., description="Stable catalog identifier")
    name: str
    slug: str
    description: str = ""
    short_description: str = ""
    price: float = Field(..., ge=0, description="Current selling price")
    original_price: Optional[float] = Field(None, description="MRP, only when above price")
    sku: str
    category_id: int = 1
    category_name: str = "NFC Cards"
    category_slug: str = "nfc-cards"
    stock_quantity: int = Field(100, ge=0)
    is_in_stock: bool = True
    rating: float = Field(4.5, ge=0, le=5)
    total_reviews: int = Field(0, ge=0)
    features: List[str] = Field(default_factory=list)
    images: List[ProductImage] = Field(default_factory=list)
    primary_image: str = PLACEHOLDER_IMAGE

    @model_validator(mode="after")
    def _drop_non_sale_original_price(self) -> "Product":
        if self.original_price is not None and self.original_price <= self.price:
            self.original_price = None
        return self

    @property
    def on_sale(self) -> bool:
        return self.original_price is not None

    @property
    def discount_percentage(self) -> int:
        if not self.original_price:
            return 0
        return round((self.original_price - self.price) / self.original_price * 100)

    @property
    def purchasable(self) -> bool:
        return self.is_in_stock and self.stock_quantity > 0

    @property
    def stock_status(self) -> str:
        if not self.purchasable:
            return "out_of_stock"
        if self.stock_quantity <= LOW_STOCK_THRESHOLD:
            return "low_stock"
        return "in_stock"


class Pagination(BaseModel):
    current_page: int = 1
    total_pages: int = 0
    per_page: int = 20
    total_items: int = 0
    has_next: bool = False
    has_prev: bool = False


class ProductPage(BaseModel):
    products: List[Product] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
    failed: bool = Field(False, description="True when both direct and relay fetch failed")


class ProductDetail(BaseModel):
    product: Product
    related: List[Product] = Field(default_factory=list)


class Category(BaseModel):
    id: int
    name: str
    slug: str
    product_count: int = 0


class CheckoutSession(BaseModel):
    """Selected product and quantity carried from a product page into billing."""

    product: Product
    quantity: int = Field(1, ge=1)

    @model_validator(mode="after")
    def _quantity_within_stock(self) -> "CheckoutSession":
        if self.quantity > self.product.stock_quantity:
            raise ValueError(
                f"quantity {self.quantity} exceeds stock of {self.product.stock_quantity}"
            )
        return self


class BillingForm(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "United States"
    payment_mode: PaymentMode = "cod"

    @property
    def full_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()

    @property
    def shipping_address(self) -> str:
        return f"{self.address}, {self.city}, {self.state} {self.zip_code}, {self.country}"


class OrderConfirmation(BaseModel):
    order_number: str
    customer_name: str
    email: str
    phone: str
    address: str
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price: float
    subtotal: float
    tax: float
    total: float
    payment_mode: PaymentMode = "cod"
    order_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def payment_label(self) -> str:
        return PAYMENT_MODE_LABELS.get(self.payment_mode, self.payment_mode)


ContactCategory = Literal["general", "support", "billing", "technical", "complaint", "suggestion"]

CONTACT_CATEGORY_LABELS = {
    "general": "General Inquiry",
    "support": "Technical Support",
    "billing": "Billing & Payment",
    "technical": "Technical Issue",
    "complaint": "Complaint",
    "suggestion": "Suggestion",
}


class ContactRequest(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    subject: str = ""
    message: str = ""
    category: ContactCategory = "general"

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name.strip(),
            "email": self.email.strip(),
            "subject": self.subject.strip(),
            "message": self.message.strip(),
            "category": self.category,
        }
        if self.phone.strip():
            out["phone"] = self.phone.strip()
        return out
