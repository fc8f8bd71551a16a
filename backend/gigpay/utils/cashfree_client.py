from __future__ import annotations

from decimal import Decimal

import requests
from flask import current_app


def _headers() -> dict:
    cfg = current_app.config
    return {
        "x-api-version": cfg.get("CASHFREE_API_VERSION", "2022-09-01"),
        "x-client-id": cfg.get("CASHFREE_APP_ID", ""),
        "x-client-secret": cfg.get("CASHFREE_SECRET_KEY", ""),
        "Content-Type": "application/json",
    }


def _base_url() -> str:
    return (current_app.config.get("CASHFREE_API_URL") or "").rstrip("/")


def _timeout() -> float:
    return float(current_app.config.get("CASHFREE_TIMEOUT_SECONDS") or 20)


def _configured() -> bool:
    cfg = current_app.config
    return bool(cfg.get("CASHFREE_APP_ID") and cfg.get("CASHFREE_SECRET_KEY"))


def create_order(
    *,
    order_id: str,
    amount: Decimal,
    currency: str,
    customer_id: str,
    customer_name: str,
    customer_email: str,
    customer_phone: str,
    return_url: str = "",
) -> dict:
    """Create a hosted-checkout order; the response carries the payment link."""
    if not _configured():
        return {"ok": False, "error": "CASHFREE_APP_ID / CASHFREE_SECRET_KEY not set"}
    payload = {
        "order_id": order_id,
        "order_amount": float(amount),
        "order_currency": currency,
        "customer_details": {
            "customer_id": customer_id,
            "customer_name": customer_name,
            "customer_email": customer_email,
            "customer_phone": customer_phone,
        },
    }
    if return_url:
        payload["order_meta"] = {"return_url": return_url}
    try:
        r = requests.post(f"{_base_url()}/orders", headers=_headers(), json=payload, timeout=_timeout())
        j = r.json() if r.content else {}
        if 200 <= r.status_code < 300:
            return {
                "ok": True,
                "order_id": j.get("order_id") or order_id,
                "payment_link": j.get("payment_link") or "",
                "payment_session_id": j.get("payment_session_id") or "",
            }
        return {"ok": False, "error": j.get("message") or f"HTTP {r.status_code}"}
    except (requests.RequestException, ValueError) as e:
        return {"ok": False, "error": str(e)}


def fetch_order(order_id: str) -> dict:
    if not _configured():
        return {"ok": False, "error": "CASHFREE_APP_ID / CASHFREE_SECRET_KEY not set"}
    try:
        r = requests.get(f"{_base_url()}/orders/{order_id}", headers=_headers(), timeout=_timeout())
        j = r.json() if r.content else {}
        if 200 <= r.status_code < 300:
            return {"ok": True, "order_id": j.get("order_id") or order_id, "order_status": j.get("order_status") or ""}
        return {"ok": False, "error": j.get("message") or f"HTTP {r.status_code}"}
    except (requests.RequestException, ValueError) as e:
        return {"ok": False, "error": str(e)}


def fetch_successful_payment_id(order_id: str) -> str | None:
    """cf_payment_id of the order's successful payment, if the processor reports one."""
    if not _configured():
        return None
    try:
        r = requests.get(f"{_base_url()}/orders/{order_id}/payments", headers=_headers(), timeout=_timeout())
        rows = r.json() if r.content else []
    except (requests.RequestException, ValueError):
        return None
    if not (200 <= r.status_code < 300) or not isinstance(rows, list):
        return None
    for row in rows:
        if isinstance(row, dict) and (row.get("payment_status") or "").upper() == "SUCCESS":
            pid = row.get("cf_payment_id")
            return str(pid) if pid is not None else None
    return None
