from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from gigpay.errors import StoreUnavailable
from gigpay.extensions import db
from gigpay.models import RejectedWebhook, WebhookAuditEntry

MAX_REJECTED_PAYLOAD = 64 * 1024


def record(*, processor_order_id: str, event_type: str, raw_payload: bytes, signature: str | None = None,
           source: str = "webhook", provider: str = "cashfree") -> WebhookAuditEntry:
    """Append and commit an audit entry before any ledger work starts."""
    entry = WebhookAuditEntry(
        provider=provider,
        source=source,
        processor_order_id=processor_order_id[:64],
        event_type=event_type[:64],
        signature=(signature or "")[:160] or None,
        raw_payload=raw_payload or b"",
        received_at=datetime.utcnow(),
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("webhook audit write failed for order %s", processor_order_id)
        raise StoreUnavailable() from e
    return entry


def was_already_processed(processor_order_id: str, event_type: str) -> bool:
    """True when an identical event already ran to completion.

    Entries whose processing failed part-way are not counted, so the
    processor's retry is handled again.
    """
    stmt = (
        select(WebhookAuditEntry.id)
        .where(
            WebhookAuditEntry.processor_order_id == processor_order_id[:64],
            WebhookAuditEntry.event_type == event_type[:64],
            WebhookAuditEntry.processed_at.is_not(None),
        )
        .limit(1)
    )
    try:
        return db.session.execute(stmt).first() is not None
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("webhook audit lookup failed for order %s", processor_order_id)
        raise StoreUnavailable() from e


def mark_processed(entry: WebhookAuditEntry, outcome: str) -> None:
    try:
        entry.processed_at = datetime.utcnow()
        entry.outcome = (outcome or "")[:32]
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("could not mark webhook audit entry %s processed", entry.id)
        raise StoreUnavailable() from e


def record_rejected(reason: str, raw_payload: bytes | None, signature: str | None = None,
                    remote_addr: str | None = None) -> None:
    """Log a refused call in its own table. Best effort: the caller answers 400 regardless."""
    try:
        db.session.add(RejectedWebhook(
            reason=reason[:64],
            remote_addr=(remote_addr or "")[:64] or None,
            signature=(signature or "")[:160] or None,
            raw_payload=(raw_payload or b"")[:MAX_REJECTED_PAYLOAD],
        ))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("could not record rejected webhook (%s)", reason)
