from __future__ import annotations

import logging
import os
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional

import httpx
from fastapi import APIRouter, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from storefront.config import Settings, load_settings
from storefront.handoff import HandoffStore
from storefront.schemas import (
    CONTACT_CATEGORY_LABELS,
    PAYMENT_MODE_LABELS,
    BillingForm,
    CheckoutSession,
    ContactRequest,
    OrderConfirmation,
)
from storefront.services.api import ApiClient, ApiError, open_client
from storefront.services.catalog import get_categories
from storefront.services.fetch import DEFAULT_PAGE_SIZE, SORT_OPTIONS, ProductQuery, ProductService
from storefront.services.health import probe_api
from storefront.services.notify import send_order_email
from storefront.services.orders import CheckoutAttempt, CheckoutState, compute_totals
from storefront.services.payments import create_payment_session
from storefront.services.report import build_environment, html_to_pdf, path_segment, render_page
from storefront.services.support import create_contact_message, validate_contact_form

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

router = APIRouter()


# --- plumbing ---

def settings_of(request: Request) -> Settings:
    return request.app.state.settings


def handoff_of(request: Request) -> HandoffStore:
    return request.app.state.handoff


@contextmanager
def remote(request: Request) -> Iterator[httpx.Client]:
    settings = settings_of(request)
    with open_client(settings.http_timeout, request.app.state.transport) as client:
        yield client


def render(request: Request, name: str, status_code: int = 200, **ctx) -> HTMLResponse:
    settings = settings_of(request)
    html = render_page(
        request.app.state.templates,
        name,
        settings=settings,
        path=request.url.path,
        year=datetime.now(timezone.utc).year,
        **ctx,
    )
    return HTMLResponse(html, status_code=status_code)


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


# --- catalog ---

@router.get("/", response_class=HTMLResponse)
def home(request: Request):
    with remote(request) as client:
        featured = ProductService(client, settings_of(request)).featured_products()
    return render(request, "home.html", products=featured)


@router.get("/shop", response_class=HTMLResponse)
def shop(
    request: Request,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "name-ASC",
    page: int = 1,
):
    option = next((o for o in SORT_OPTIONS if o["key"] == sort), SORT_OPTIONS[0])
    query = ProductQuery(
        limit=DEFAULT_PAGE_SIZE,
        page=max(page, 1),
        search=(search or "").strip() or None,
        # category 0 is "All Products"
        category=category if category and category != "0" else None,
        sort=option["sort"],
        order=option["order"],
    )

    settings = settings_of(request)
    with remote(request) as client:
        result = ProductService(client, settings).list_products(query)
        categories = get_categories(ApiClient(client, settings.api_base_url))

    return render(
        request,
        "shop.html",
        result=result,
        categories=categories,
        sort_options=SORT_OPTIONS,
        current_sort=option["key"],
        current_category=query.category or "0",
        search=query.search or "",
    )


@router.get("/product/{identifier:path}", response_class=HTMLResponse)
def product_detail(request: Request, identifier: str):
    with remote(request) as client:
        detail = ProductService(client, settings_of(request)).find_product(identifier)
    if detail is None:
        return render(request, "not_found.html", status_code=404, identifier=identifier)
    return render(request, "product.html", product=detail.product, related=detail.related)


def start_checkout(request: Request, identifier: str, quantity: int) -> RedirectResponse:
    # take a fresh snapshot rather than trusting prices posted by the browser
    with remote(request) as client:
        detail = ProductService(client, settings_of(request)).find_product(identifier)
    if detail is None:
        raise HTTPException(status_code=404, detail="Product not found")

    product = detail.product
    if not product.purchasable:
        return redirect(f"/product/{path_segment(product.id)}")

    quantity = min(max(quantity, 1), product.stock_quantity)
    token = handoff_of(request).put(CheckoutSession(product=product, quantity=quantity))
    logger.info("Checkout started: %s x%d", product.id, quantity)
    return redirect(f"/billing?checkout={token}")


@router.post("/product/{identifier:path}/buy")
def buy_now(request: Request, identifier: str, quantity: int = Form(1)):
    return start_checkout(request, identifier, quantity)


@router.post("/shop/buy/{identifier:path}")
def buy_from_shop(request: Request, identifier: str):
    return start_checkout(request, identifier, 1)


# --- checkout ---

def billing_page(
    request: Request,
    session: CheckoutSession,
    form: BillingForm,
    errors: Optional[Dict[str, str]] = None,
    error_message: Optional[str] = None,
    status_code: int = 200,
) -> HTMLResponse:
    # the form re-carries the session under a new one-shot token
    token = handoff_of(request).put(session)
    totals = compute_totals(session.product.price, session.quantity, settings_of(request).tax_rate)
    return render(
        request,
        "billing.html",
        status_code=status_code,
        session=session,
        form=form,
        errors=errors or {},
        error_message=error_message,
        checkout_token=token,
        totals=totals,
        payment_modes=PAYMENT_MODE_LABELS,
    )


@router.get("/billing", response_class=HTMLResponse)
def billing(request: Request, checkout: Optional[str] = None):
    session = handoff_of(request).take(checkout, CheckoutSession)
    if session is None:
        # never show a checkout form without a product
        return redirect("/shop")
    return billing_page(request, session, BillingForm())


@router.post("/billing", response_class=HTMLResponse)
def submit_billing(
    request: Request,
    checkout: str = Form(""),
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    address: str = Form(""),
    city: str = Form(""),
    state: str = Form(""),
    zip_code: str = Form(""),
    country: str = Form("United States"),
    payment_mode: str = Form("cod"),
):
    session = handoff_of(request).take(checkout, CheckoutSession)
    if session is None:
        return redirect("/shop")

    form = BillingForm(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        address=address,
        city=city,
        state=state,
        zip_code=zip_code,
        country=country or "United States",
        payment_mode=payment_mode if payment_mode in PAYMENT_MODE_LABELS else "cod",
    )

    settings = settings_of(request)
    attempt = CheckoutAttempt(session, settings.tax_rate)
    with remote(request) as client:
        attempt.submit(ApiClient(client, settings.api_base_url), form)

    if attempt.state is CheckoutState.IDLE:
        return billing_page(
            request, session, form,
            errors=attempt.errors,
            error_message="Please fix the errors in the form before submitting.",
            status_code=422,
        )
    if attempt.state is CheckoutState.FAILED:
        return billing_page(request, session, form, error_message=attempt.error_message, status_code=502)

    confirmation = attempt.confirmation
    send_order_email(confirmation, settings)
    thank_you = f"/thank-you?order={handoff_of(request).put(confirmation)}"

    if confirmation.payment_mode == "online":
        base = settings.public_base_url or str(request.base_url).rstrip("/")
        payment_url = create_payment_session(confirmation, f"{base}{thank_you}", f"{base}/shop", settings)
        if payment_url:
            return redirect(payment_url)
    return redirect(thank_you)


@router.get("/thank-you", response_class=HTMLResponse)
def thank_you(request: Request, order: Optional[str] = None):
    confirmation = handoff_of(request).take(order, OrderConfirmation)
    if confirmation is None:
        return redirect("/")
    return render(request, "thank_you.html", order=confirmation)


@router.post("/receipt")
def receipt(
    request: Request,
    order_number: str = Form(...),
    customer_name: str = Form(...),
    email: str = Form(...),
    phone: str = Form(""),
    address: str = Form(""),
    product_name: str = Form(...),
    quantity: int = Form(...),
    unit_price: float = Form(...),
    subtotal: float = Form(...),
    tax: float = Form(...),
    total: float = Form(...),
    payment_mode: str = Form("cod"),
    order_date: Optional[str] = Form(None),
):
    try:
        order = OrderConfirmation(
            order_number=order_number,
            customer_name=customer_name,
            email=email,
            phone=phone,
            address=address,
            product_name=product_name,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=subtotal,
            tax=tax,
            total=total,
            payment_mode=payment_mode,
            **({"order_date": order_date} if order_date else {}),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid receipt data: {e.error_count()} error(s)")

    html = render_page(request.app.state.templates, "receipt.html", order=order)
    pdf = html_to_pdf(html)
    safe_name = re.sub(r"[^a-zA-Z0-9]+", "-", order.order_number).strip("-") or "order"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="receipt-{safe_name}.pdf"'},
    )


# --- contact & static pages ---

def contact_page(request: Request, form: ContactRequest, status_code: int = 200, **ctx) -> HTMLResponse:
    return render(
        request,
        "contact.html",
        status_code=status_code,
        form=form,
        categories=CONTACT_CATEGORY_LABELS,
        **ctx,
    )


@router.get("/contact", response_class=HTMLResponse)
def contact(request: Request):
    return contact_page(request, ContactRequest())


@router.post("/contact", response_class=HTMLResponse)
def submit_contact(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    subject: str = Form(""),
    message: str = Form(""),
    category: str = Form("general"),
):
    form = ContactRequest(
        name=name,
        email=email,
        phone=phone,
        subject=subject,
        message=message,
        category=category if category in CONTACT_CATEGORY_LABELS else "general",
    )

    errors = validate_contact_form(form)
    if errors:
        return contact_page(request, form, status_code=422, error=", ".join(errors))

    settings = settings_of(request)
    try:
        with remote(request) as client:
            env = create_contact_message(ApiClient(client, settings.api_base_url), form)
    except ApiError as e:
        logger.error("Contact form error: %s (cause: %r)", e, e.cause)
        return contact_page(
            request, form, status_code=502,
            error="An error occurred while sending your message. Please try again.",
        )

    if not env.success:
        return contact_page(
            request, form, status_code=502,
            error=env.message or "Failed to send message. Please try again.",
        )
    return contact_page(request, ContactRequest(), submitted=True)


@router.get("/about", response_class=HTMLResponse)
def about(request: Request):
    return render(request, "about.html")


@router.get("/terms-and-conditions", response_class=HTMLResponse)
def terms(request: Request):
    return render(request, "terms.html")


@router.get("/privacy-policy", response_class=HTMLResponse)
def privacy(request: Request):
    return render(request, "privacy.html")


@router.get("/refund-policy", response_class=HTMLResponse)
def refund(request: Request):
    return render(request, "refund.html")


@router.get("/api-status")
def api_status(request: Request):
    return JSONResponse(probe_api(settings_of(request).api_base_url))


def create_app(settings: Optional[Settings] = None, transport: Optional[httpx.BaseTransport] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="NFC Card Store")
    app.state.settings = settings
    app.state.transport = transport
    app.state.handoff = HandoffStore(ttl=settings.handoff_ttl_seconds)
    app.state.templates = build_environment(TEMPLATES_DIR)

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
