from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from gigpay.errors import InvalidTransition, NotFound, ProcessorError, StoreUnavailable, ValidationError
from gigpay.extensions import db
from gigpay.models import Contract, Payment, PaymentStatus, PaymentType
from gigpay.models.payment import can_transition, new_payment_id
from gigpay.utils import cashfree_client, cashfree_events, webhook_audit, wallets
from gigpay.utils.commission import FeeSplit, split
from gigpay.utils.money import CENT, ZERO, to_money
from gigpay.utils.notify import notify


class TransitionOutcome(str, enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNKNOWN_ORDER = "unknown_order"
    INVALID_TRANSITION = "invalid_transition"
    IGNORED = "ignored"


@dataclass
class TransitionResult:
    outcome: TransitionOutcome
    order_id: str
    event_type: str = ""
    payment_id: str | None = None
    previous_status: str | None = None
    status: str | None = None
    credited: Decimal | None = None
    platform_fee: Decimal | None = None

    @property
    def changed(self) -> bool:
        return self.outcome is TransitionOutcome.APPLIED

    def to_dict(self):
        return {
            "outcome": self.outcome.value,
            "order_id": self.order_id,
            "event_type": self.event_type,
            "payment_id": self.payment_id,
            "previous_status": self.previous_status,
            "status": self.status,
            "credited": str(self.credited) if self.credited is not None else None,
            "platform_fee": str(self.platform_fee) if self.platform_fee is not None else None,
        }


# -----------------------------
# Payment creation
# -----------------------------

# Payments in these states count against the contract total.
COMMITTED_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value)


def committed_amount(contract_id: int) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.contract_id == int(contract_id), Payment.status.in_(COMMITTED_STATUSES))
        .scalar()
    )
    return Decimal(str(total or 0)).quantize(CENT)


def _default_amount(contract: Contract, ptype: PaymentType) -> Decimal:
    """Advance and completion each cover half of the contract total."""
    total = Decimal(contract.total_amount or ZERO)
    advance = (total / 2).quantize(CENT, rounding=ROUND_HALF_UP)
    if ptype is PaymentType.ADVANCE:
        return advance
    if ptype is PaymentType.COMPLETION:
        return total - advance
    raise ValidationError("amount required for milestone payments")


def create_payment(
    *,
    contract_id: int,
    amount,
    payment_type: str,
    customer_name: str,
    customer_email: str,
    customer_phone: str,
    return_url: str = "",
) -> Payment:
    """Record a pending payment and obtain a hosted payment link for it.

    The local id doubles as the processor order id. If the processor call
    fails the payment stays pending and a ProcessorError is raised; nothing
    retries here.
    """
    try:
        ptype = PaymentType((payment_type or "").strip().lower())
    except ValueError:
        raise ValidationError("payment_type must be one of advance, completion, milestone")

    contract = db.session.get(Contract, int(contract_id))
    if contract is None:
        raise NotFound("Contract not found")
    if contract.status != "active":
        raise InvalidTransition(f"Contract is {contract.status}")

    gross = _default_amount(contract, ptype) if amount in (None, "") else to_money(amount)
    if gross <= 0:
        raise ValidationError("amount must be > 0")
    outstanding = Decimal(contract.total_amount or ZERO) - committed_amount(contract.id)
    if gross > outstanding:
        raise ValidationError(f"amount exceeds the {max(outstanding, ZERO):.2f} still payable on this contract")

    cfg = current_app.config
    pid = new_payment_id()
    payment = Payment(
        id=pid,
        contract_id=int(contract.id),
        client_id=int(contract.client_id),
        freelancer_id=int(contract.freelancer_id),
        amount=gross,
        currency=cfg.get("PAYMENT_CURRENCY", "INR"),
        payment_type=ptype.value,
        status=PaymentStatus.PENDING.value,
        processor_order_id=pid,
    )
    try:
        db.session.add(payment)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("could not create payment for contract %s", contract_id)
        raise StoreUnavailable() from e

    link = cashfree_client.create_order(
        order_id=pid,
        amount=gross,
        currency=payment.currency,
        customer_id=f"client_{int(contract.client_id)}",
        customer_name=customer_name or "Customer",
        customer_email=customer_email or "",
        customer_phone=customer_phone or "",
        return_url=return_url or cfg.get("PAYMENT_RETURN_URL", ""),
    )
    if not link.get("ok"):
        current_app.logger.error("payment link creation failed for %s: %s", pid, link.get("error"))
        raise ProcessorError()

    try:
        payment.processor_order_id = (link.get("order_id") or pid)[:64]
        payment.payment_link = (link.get("payment_link") or "")[:512]
        payment.updated_at = datetime.utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("could not store payment link for %s", pid)
        raise StoreUnavailable() from e

    current_app.logger.info("payment %s created for contract %s (%s %s)", pid, contract.id, gross, ptype.value)
    title = contract.title or f"#{contract.id}"
    notify(contract.client_id, f"Payment request of {gross:.2f} for contract \"{title}\".", "payment")
    notify(contract.freelancer_id, f"Payment request of {gross:.2f} has been sent to the client for contract \"{title}\".", "payment")
    return payment


# -----------------------------
# State machine
# -----------------------------

def _complete_contract(contract_id: int, now: datetime) -> None:
    db.session.execute(
        update(Contract)
        .where(Contract.id == int(contract_id), Contract.status == "active")
        .values(status="completed", completed_at=now)
        .execution_options(synchronize_session=False)
    )


def apply_event(processor_order_id: str, event_type: str, payload: dict) -> TransitionResult:
    """Advance the payment behind ``processor_order_id`` as the event asks.

    The status change is a conditional UPDATE keyed on the current status, so
    only one delivery can win it; the wallet credit happens in the same
    transaction and only on pending -> paid. Store errors abort the whole unit
    and surface as StoreUnavailable.
    """
    log = current_app.logger
    fees: FeeSplit | None = None
    target = cashfree_events.target_status(event_type, cashfree_events.extract_status(payload))
    if target is None:
        log.info("ignoring event %s for order %s", event_type, processor_order_id)
        return TransitionResult(TransitionOutcome.IGNORED, processor_order_id, event_type)

    try:
        payment = Payment.query.filter_by(processor_order_id=processor_order_id).populate_existing().first()
        if payment is None:
            log.info("event %s references unknown order %s", event_type, processor_order_id)
            return TransitionResult(TransitionOutcome.UNKNOWN_ORDER, processor_order_id, event_type)

        current = payment.status_enum
        result = TransitionResult(
            TransitionOutcome.DUPLICATE,
            processor_order_id,
            event_type,
            payment_id=payment.id,
            previous_status=current.value,
            status=current.value,
        )
        if current is target:
            log.info("payment %s already %s; duplicate %s skipped", payment.id, current.value, event_type)
            return result
        if not can_transition(current, target):
            log.warning("payment %s: %s -> %s rejected (%s)", payment.id, current.value, target.value, event_type)
            result.outcome = TransitionOutcome.INVALID_TRANSITION
            return result

        now = datetime.utcnow()
        values = {"status": target.value, "updated_at": now}
        if target is PaymentStatus.PAID:
            fees = split(payment.amount, current_app.config["PLATFORM_FEE_RATE"])
            values.update(paid_at=now, platform_fee=fees.platform_fee, net_amount=fees.net_amount)
            processor_payment_id = cashfree_events.extract_payment_id(payload)
            if processor_payment_id:
                values["processor_payment_id"] = processor_payment_id

        moved = db.session.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == current.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if moved.rowcount != 1:
            # A concurrent delivery changed the status first.
            db.session.rollback()
            log.info("payment %s changed concurrently; %s skipped", result.payment_id, event_type)
            return result

        if fees is not None and fees.net_amount > 0:
            wallets.credit(
                payment.freelancer_id,
                fees.net_amount,
                kind="payment_credit",
                reference=f"payment:{payment.id}",
                idempotency_key=f"payment:{payment.id}:credit",
                note=f"gross {fees.gross_amount} fee {fees.platform_fee}",
            )
        if fees is not None and payment.payment_type == PaymentType.COMPLETION.value:
            _complete_contract(payment.contract_id, now)

        freelancer_id, client_id, gross = int(payment.freelancer_id), int(payment.client_id), payment.amount
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        log.exception("store failure applying %s to order %s", event_type, processor_order_id)
        raise StoreUnavailable() from e

    result.outcome = TransitionOutcome.APPLIED
    result.status = target.value
    if fees is not None:
        result.credited = fees.net_amount
        result.platform_fee = fees.platform_fee
        log.info("payment %s paid; freelancer %s credited %s (fee %s)",
                 result.payment_id, freelancer_id, fees.net_amount, fees.platform_fee)
    else:
        log.info("payment %s: %s -> %s", result.payment_id, result.previous_status, target.value)

    _notify_transition(target, freelancer_id, client_id, gross, fees)
    return result


def _notify_transition(target: PaymentStatus, freelancer_id: int, client_id: int, gross: Decimal,
                       fees: FeeSplit | None) -> None:
    if target is PaymentStatus.PAID and fees is not None:
        notify(freelancer_id, f"Payment of {gross:.2f} received. Your wallet has been credited with {fees.net_amount:.2f}.", "payment")
        notify(client_id, f"Payment of {gross:.2f} has been processed successfully.", "payment")
    elif target is PaymentStatus.REFUNDED:
        notify(freelancer_id, f"Payment of {gross:.2f} was refunded to the client.", "payment")
        notify(client_id, f"Your payment of {gross:.2f} has been refunded.", "payment")
    elif target in (PaymentStatus.FAILED, PaymentStatus.EXPIRED, PaymentStatus.CANCELLED):
        notify(client_id, f"Payment of {gross:.2f} was {target.value}.", "payment")


# -----------------------------
# Processor polling
# -----------------------------

def sync_payment(payment: Payment) -> TransitionResult:
    """Ask the processor for the order status and run it through apply_event."""
    order_id = payment.processor_order_id or payment.id
    order = cashfree_client.fetch_order(order_id)
    if not order.get("ok"):
        current_app.logger.error("order status lookup failed for %s: %s", order_id, order.get("error"))
        raise ProcessorError()

    payload = {"order_id": order_id, "order_status": order.get("order_status") or ""}
    if payload["order_status"].upper() == "PAID":
        cf_payment_id = cashfree_client.fetch_successful_payment_id(order_id)
        if cf_payment_id:
            payload["cf_payment_id"] = cf_payment_id

    event_type = "order.status_sync"
    entry = webhook_audit.record(
        processor_order_id=order_id,
        event_type=event_type,
        raw_payload=json.dumps(payload, sort_keys=True).encode("utf-8"),
        source="poll",
    )
    result = apply_event(order_id, event_type, payload)
    webhook_audit.mark_processed(entry, result.outcome.value)
    return result


# -----------------------------
# Reads
# -----------------------------

def get_payment(payment_id: str) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFound("Payment not found")
    return payment


def payment_history(user_id: int, limit: int = 200) -> list[Payment]:
    uid = int(user_id)
    return (
        Payment.query
        .filter(or_(Payment.client_id == uid, Payment.freelancer_id == uid))
        .order_by(Payment.created_at.desc())
        .limit(int(limit))
        .all()
    )
