"""Normalise the processor's webhook payload shapes.

Three shapes reach us: order webhooks (``data.order`` / ``data.payment``),
payment-link webhooks (``payment_link_id`` / ``link_meta``), and a flat
``{order_id, order_status}`` form.
"""
from __future__ import annotations

from typing import Any

from gigpay.models import PaymentStatus

EVENT_STATUS = {
    "payment_link.paid": PaymentStatus.PAID,
    "payment_success": PaymentStatus.PAID,
    "payment_success_webhook": PaymentStatus.PAID,
    "payment_failed": PaymentStatus.FAILED,
    "payment_failed_webhook": PaymentStatus.FAILED,
    "payment_link.failed": PaymentStatus.FAILED,
    "payment_link.expired": PaymentStatus.EXPIRED,
    "payment_link.cancelled": PaymentStatus.CANCELLED,
    "refund_status_webhook": PaymentStatus.REFUNDED,
    "payment.refunded": PaymentStatus.REFUNDED,
}

RAW_STATUS = {
    "PAID": PaymentStatus.PAID,
    "SUCCESS": PaymentStatus.PAID,
    "FAILED": PaymentStatus.FAILED,
    "EXPIRED": PaymentStatus.EXPIRED,
    "CANCELLED": PaymentStatus.CANCELLED,
    "TERMINATED": PaymentStatus.CANCELLED,
    "REFUNDED": PaymentStatus.REFUNDED,
}


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def extract_order_id(payload: dict) -> str:
    data = _dict(payload.get("data"))
    candidates = (
        _dict(payload.get("link_meta")).get("order_id"),
        _dict(data.get("link_meta")).get("order_id"),
        _dict(data.get("order")).get("order_id"),
        payload.get("order_id"),
        data.get("order_id"),
        payload.get("payment_link_id"),
    )
    for c in candidates:
        s = _str(c)
        if s:
            return s[:64]
    return ""


def extract_status(payload: dict) -> str:
    data = _dict(payload.get("data"))
    candidates = (
        payload.get("order_status"),
        payload.get("link_status"),
        payload.get("status"),
        _dict(data.get("payment")).get("payment_status"),
        _dict(data.get("order")).get("order_status"),
        data.get("order_status"),
    )
    for c in candidates:
        s = _str(c)
        if s:
            return s.upper()
    return ""


def extract_event_type(payload: dict) -> str:
    data = _dict(payload.get("data"))
    for c in (payload.get("event_type"), payload.get("type"), data.get("event_type")):
        s = _str(c)
        if s:
            return s[:64]
    status = extract_status(payload)
    return f"order.status.{status.lower()}" if status else ""


def extract_payment_id(payload: dict) -> str | None:
    data = _dict(payload.get("data"))
    candidates = (
        _dict(data.get("payment")).get("cf_payment_id"),
        _dict(data.get("payment")).get("payment_id"),
        _dict(payload.get("payment_details")).get("cf_payment_id"),
        _dict(payload.get("payment_details")).get("payment_id"),
        payload.get("cf_payment_id"),
        payload.get("payment_id"),
    )
    for c in candidates:
        s = _str(c)
        if s:
            return s[:64]
    return None


def target_status(event_type: str, raw_status: str = "") -> PaymentStatus | None:
    """Status an event asks for, or None when it is not a status change we track."""
    by_event = EVENT_STATUS.get((event_type or "").strip().lower())
    if by_event is not None:
        return by_event
    return RAW_STATUS.get((raw_status or "").strip().upper())
