from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from gigpay.extensions import db
from gigpay.models import FreelancerWallet, WalletTxn
from gigpay.utils.money import ZERO


def _sum(freelancer_id: int, *, direction: str | None = None, kind: str | None = None) -> Decimal:
    q = db.session.query(func.coalesce(func.sum(WalletTxn.amount), 0)).filter(WalletTxn.freelancer_id == int(freelancer_id))
    if direction:
        q = q.filter(WalletTxn.direction == direction)
    if kind:
        q = q.filter(WalletTxn.kind == kind)
    total = q.scalar()
    return Decimal(str(total or 0)).quantize(Decimal("0.01"))


def check_wallet(w: FreelancerWallet) -> list[str]:
    credits = _sum(w.freelancer_id, direction="credit")
    debits = _sum(w.freelancer_id, direction="debit")
    earned = _sum(w.freelancer_id, kind="payment_credit")
    reversed_ = _sum(w.freelancer_id, kind="payout_reversal")

    available = Decimal(w.available_balance or ZERO)
    reserved = Decimal(w.reserved_balance or ZERO)
    paid_out = Decimal(w.paid_out_total or ZERO)

    issues = []
    if credits - debits != available:
        issues.append("ledger_mismatch")
    if earned != Decimal(w.total_earned or ZERO):
        issues.append("total_earned_mismatch")
    if debits - reversed_ != reserved + paid_out:
        issues.append("payout_mismatch")
    if available < 0:
        issues.append("negative_available")
    if reserved < 0:
        issues.append("negative_reserved")
    return issues


def reconcile_wallets(*, limit: int = 500) -> dict:
    """Compare each wallet with its journal. Reports only; never corrects balances."""
    checked = 0
    anomalies = []

    wallets = FreelancerWallet.query.order_by(FreelancerWallet.id.asc()).limit(int(limit)).all()
    for w in wallets:
        checked += 1
        issues = check_wallet(w)
        if not issues:
            continue
        item = {
            "freelancer_id": int(w.freelancer_id),
            "issues": issues,
            "available_balance": str(w.available_balance),
            "reserved_balance": str(w.reserved_balance),
            "total_earned": str(w.total_earned),
        }
        anomalies.append(item)
        current_app.logger.warning("wallet anomaly: %s", item)

    return {"checked": checked, "anomalies": len(anomalies), "items": anomalies}
