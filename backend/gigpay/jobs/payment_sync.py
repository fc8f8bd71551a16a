from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from gigpay.errors import GigPayError
from gigpay.models import Payment, PaymentStatus
from gigpay.services.payments import sync_payment


def sync_pending_payments(*, limit: int = 100, older_than_minutes: int | None = None) -> dict:
    """Poll the processor for pending payments whose webhook never arrived."""
    minutes = older_than_minutes
    if minutes is None:
        minutes = int(current_app.config.get("PENDING_SYNC_AFTER_MINUTES", 15))
    cutoff = datetime.utcnow() - timedelta(minutes=int(minutes))

    rows = (
        Payment.query
        .filter(Payment.status == PaymentStatus.PENDING.value, Payment.created_at <= cutoff)
        .order_by(Payment.created_at.asc())
        .limit(int(limit))
        .all()
    )

    checked = changed = errors = 0
    for p in rows:
        checked += 1
        try:
            if sync_payment(p).changed:
                changed += 1
        except GigPayError as e:
            errors += 1
            current_app.logger.warning("sync of payment %s failed: %s", p.id, e.message)

    return {"checked": checked, "changed": changed, "errors": errors}
