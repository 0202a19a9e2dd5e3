from __future__ import annotations

from typing import Any, Dict

import requests


def probe_api(api_base_url: str, timeout: float = 10) -> Dict[str, Any]:
    """
    Server-side probe to confirm the product API answers with a JSON envelope.
    Operators hit this when the shop shows an empty catalog.
    """
    probe_url = f"{api_base_url.rstrip('/')}/products.php?action=read&limit=1"
    try:
        r = requests.get(
            probe_url,
            timeout=timeout,
            headers={"Accept": "application/json", "User-Agent": "NFCStorefront/1.0"},
        )
    except requests.RequestException:
        return {"ok": False, "reason": "Network error reaching the API", "status": None}

    if r.status_code != 200:
        return {"ok": False, "reason": f"products.php returned HTTP {r.status_code}", "status": r.status_code}

    try:
        data = r.json()
    except ValueError:
        return {"ok": False, "reason": "products.php did not return JSON", "status": r.status_code}

    if not isinstance(data, dict) or not data.get("success"):
        message = data.get("message") if isinstance(data, dict) else None
        return {"ok": False, "reason": message or "API reported success: false", "status": r.status_code}

    items = data.get("data")
    return {"ok": True, "status": r.status_code, "products_sample": len(items) if isinstance(items, list) else 0}
