from __future__ import annotations

import json

from flask import current_app

from gigpay.errors import InvalidSignature, MalformedWebhook
from gigpay.services.payments import TransitionOutcome, TransitionResult, apply_event
from gigpay.utils import cashfree_events, webhook_audit
from gigpay.utils.signature import verify


def _parse(raw_body: bytes) -> dict:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise MalformedWebhook("Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise MalformedWebhook("Webhook body must be a JSON object")
    return payload


def handle_webhook(raw_body: bytes, signature: str | None, remote_addr: str | None = None) -> TransitionResult:
    """verify -> audit -> transition (-> credit -> notify), stopping at the first failure.

    InvalidSignature / MalformedWebhook mean the call is refused with no
    audit entry of the accepted kind; StoreUnavailable means the processor
    should retry.
    """
    log = current_app.logger
    raw = raw_body or b""

    if not verify(raw, signature, current_app.config.get("CASHFREE_WEBHOOK_SECRET")):
        reason = "missing_signature" if not signature else "invalid_signature"
        log.warning("webhook rejected (%s) from %s", reason, remote_addr or "?")
        webhook_audit.record_rejected(reason, raw, signature=signature, remote_addr=remote_addr)
        raise InvalidSignature()

    try:
        payload = _parse(raw)
    except MalformedWebhook:
        webhook_audit.record_rejected("malformed_body", raw, signature=signature, remote_addr=remote_addr)
        raise

    order_id = cashfree_events.extract_order_id(payload)
    event_type = cashfree_events.extract_event_type(payload)
    if not order_id or not event_type:
        webhook_audit.record_rejected("missing_order_reference", raw, signature=signature, remote_addr=remote_addr)
        raise MalformedWebhook("Webhook carries no order id or event type")

    duplicate = webhook_audit.was_already_processed(order_id, event_type)
    entry = webhook_audit.record(
        processor_order_id=order_id,
        event_type=event_type,
        raw_payload=raw,
        signature=signature,
    )
    if duplicate:
        log.info("duplicate delivery of %s for order %s acknowledged", event_type, order_id)
        webhook_audit.mark_processed(entry, TransitionOutcome.DUPLICATE.value)
        return TransitionResult(TransitionOutcome.DUPLICATE, order_id, event_type)

    result = apply_event(order_id, event_type, payload)
    webhook_audit.mark_processed(entry, result.outcome.value)
    return result
