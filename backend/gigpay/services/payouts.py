from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from gigpay.errors import InvalidTransition, NotFound, PayoutValidationError, StoreUnavailable, ValidationError
from gigpay.extensions import db
from gigpay.models import PayoutRequest, PayoutStatus
from gigpay.models.payout import PAYOUT_TRANSITIONS
from gigpay.utils import wallets
from gigpay.utils.money import to_money
from gigpay.utils.notify import notify


def _clean_bank_details(raw) -> dict:
    if not isinstance(raw, dict):
        raise PayoutValidationError("bank_details required")
    account_number = str(raw.get("account_number") or raw.get("accountNumber") or "").strip()
    ifsc_code = str(raw.get("ifsc_code") or raw.get("ifscCode") or "").strip().upper()
    account_name = str(raw.get("account_name") or raw.get("accountName") or "").strip()
    if not account_number or not ifsc_code:
        raise PayoutValidationError("bank_details.account_number and bank_details.ifsc_code are required")
    details = {"account_number": account_number[:34], "ifsc_code": ifsc_code[:16]}
    if account_name:
        details["account_name"] = account_name[:120]
    return details


def request_payout(freelancer_id: int, amount, bank_details) -> PayoutRequest:
    """Earmark funds and record a pending payout request.

    The wallet debit and the request row are committed together; on any
    failure neither exists. Raises InsufficientFunds when the reserve floor
    would be breached.
    """
    cfg = current_app.config
    try:
        amt = to_money(amount)
    except ValidationError as e:
        raise PayoutValidationError(e.message)
    if amt <= 0:
        raise PayoutValidationError("amount must be > 0")
    minimum = cfg["MINIMUM_PAYOUT"]
    if minimum > 0 and amt < minimum:
        raise PayoutValidationError(f"Minimum payout amount is {minimum:.2f}")
    details = _clean_bank_details(bank_details)

    now = datetime.utcnow()
    pr = PayoutRequest(
        freelancer_id=int(freelancer_id),
        amount=amt,
        status=PayoutStatus.PENDING.value,
        bank_details=details,
        created_at=now,
        updated_at=now,
    )
    try:
        db.session.add(pr)
        db.session.flush()
        wallets.debit(
            freelancer_id,
            amt,
            reserve_floor=cfg["RESERVE_FLOOR"],
            reference=f"payout:{pr.id}",
            idempotency_key=f"payout:{pr.id}:debit",
            note="Payout requested",
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("payout request for freelancer %s failed", freelancer_id)
        raise StoreUnavailable() from e
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("payout %s requested by freelancer %s for %s", pr.id, freelancer_id, amt)
    notify(freelancer_id, f"Payout request of {amt:.2f} has been submitted and is being processed.", "payout")
    return pr


def get_payout(payout_id: int) -> PayoutRequest:
    pr = db.session.get(PayoutRequest, int(payout_id), populate_existing=True)
    if pr is None:
        raise NotFound("Payout request not found")
    return pr


def _decide(payout_id: int, target: PayoutStatus, admin_id: int | None) -> tuple[PayoutRequest, bool]:
    pr = get_payout(payout_id)
    if pr.status == target.value:
        return pr, False
    current = PayoutStatus(pr.status)
    if target not in PAYOUT_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(f"Payout request is already {current.value}")

    freelancer_id, amount = int(pr.freelancer_id), pr.amount
    now = datetime.utcnow()
    try:
        moved = db.session.execute(
            update(PayoutRequest)
            .where(PayoutRequest.id == pr.id, PayoutRequest.status == PayoutStatus.PENDING.value)
            .values(status=target.value, decided_at=now, decided_by=admin_id, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if moved.rowcount != 1:
            db.session.rollback()
            pr = get_payout(payout_id)
            if pr.status == target.value:
                return pr, False
            raise InvalidTransition(f"Payout request is already {pr.status}")

        if target is PayoutStatus.PAID:
            wallets.settle_reserved(freelancer_id, amount)
        else:
            wallets.release_reserved(
                freelancer_id,
                amount,
                reference=f"payout:{pr.id}",
                idempotency_key=f"payout:{pr.id}:reversal",
                note="Payout rejected",
            )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("could not mark payout %s %s", payout_id, target.value)
        raise StoreUnavailable() from e
    except Exception:
        db.session.rollback()
        raise

    return get_payout(payout_id), True


def approve(payout_id: int, admin_id: int | None = None) -> PayoutRequest:
    """pending -> paid. The amount was debited at request time; this only
    moves it from reserved to paid-out."""
    pr, changed = _decide(payout_id, PayoutStatus.PAID, admin_id)
    if changed:
        current_app.logger.info("payout %s approved by %s", pr.id, admin_id)
        notify(pr.freelancer_id, f"Your payout request of {pr.amount:.2f} has been approved and processed.", "payout")
    return pr


def reject(payout_id: int, admin_id: int | None = None) -> PayoutRequest:
    """pending -> rejected, crediting the earmarked amount back to available_balance."""
    pr, changed = _decide(payout_id, PayoutStatus.REJECTED, admin_id)
    if changed:
        current_app.logger.info("payout %s rejected by %s; %s returned to wallet", pr.id, admin_id, pr.amount)
        notify(pr.freelancer_id, f"Your payout request of {pr.amount:.2f} was rejected and the amount returned to your wallet.", "payout")
    return pr


def payouts_for(freelancer_id: int, limit: int = 200) -> list[PayoutRequest]:
    return (
        PayoutRequest.query.filter_by(freelancer_id=int(freelancer_id))
        .order_by(PayoutRequest.created_at.desc(), PayoutRequest.id.desc())
        .limit(int(limit))
        .all()
    )


def admin_payouts(status: str = "", limit: int = 300) -> list[PayoutRequest]:
    qry = PayoutRequest.query
    if status:
        qry = qry.filter_by(status=status)
    return qry.order_by(PayoutRequest.created_at.desc(), PayoutRequest.id.desc()).limit(int(limit)).all()
