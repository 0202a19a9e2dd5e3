from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader
from playwright.sync_api import sync_playwright


def money(value: Any) -> str:
    try:
        return f"${float(value):,.2f}"
    except (TypeError, ValueError):
        return "$0.00"


def path_segment(value: Any) -> str:
    # derived ids may carry "/", "?" or "#"
    return quote(str(value), safe="")


def build_environment(templates_dir: Path) -> Environment:
    env = Environment(loader=FileSystemLoader(str(templates_dir)), autoescape=True)
    env.filters["money"] = money
    env.filters["path_segment"] = path_segment
    return env


def render_page(env: Environment, name: str, **ctx: Any) -> str:
    return env.get_template(name).render(**ctx)


def html_to_pdf(html: str, brand_name: str = "NFC Card Store") -> bytes:
    footer_template = f"""
    <div style="font-size:9px; width:100%; padding:0 18mm; color:#666;
                display:flex; justify-content:space-between;">
      <div>{brand_name}</div>
      <div>Page <span class="pageNumber"></span> / <span class="totalPages"></span></div>
    </div>
    """

    with sync_playwright() as p:
        browser = p.chromium.launch(args=["--disable-dev-shm-usage"])
        try:
            page = browser.new_page()
            # receipt template is self-contained, no external resources to wait for
            page.set_content(html, wait_until="domcontentloaded", timeout=30_000)
            return page.pdf(
                format="A4",
                print_background=True,
                display_header_footer=True,
                header_template="<div></div>",
                footer_template=footer_template,
                margin={"top": "18mm", "bottom": "22mm", "left": "18mm", "right": "18mm"},
            )
        finally:
            browser.close()
