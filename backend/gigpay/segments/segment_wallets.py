from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from gigpay.jobs.wallet_reconciler import reconcile_wallets
from gigpay.models import WalletTxn
from gigpay.services import payouts as payout_service
from gigpay.utils.jwt_utils import current_caller
from gigpay.utils.wallets import get_wallet

wallets_bp = Blueprint("wallets_bp", __name__, url_prefix="/api/wallet")


@wallets_bp.get("")
def my_wallet():
    u = current_caller()
    if not u:
        return jsonify({"message": "Unauthorized"}), 401
    w = get_wallet(u.user_id)
    wallet = w.to_dict() if w else {
        "freelancer_id": u.user_id,
        "available_balance": "0.00",
        "reserved_balance": "0.00",
        "total_earned": "0.00",
        "paid_out_total": "0.00",
        "updated_at": None,
    }
    wallet["reserve_floor"] = str(current_app.config["RESERVE_FLOOR"])
    return jsonify({"ok": True, "wallet": wallet}), 200


@wallets_bp.get("/ledger")
def my_ledger():
    u = current_caller()
    if not u:
        return jsonify([]), 200
    rows = (
        WalletTxn.query.filter_by(freelancer_id=u.user_id)
        .order_by(WalletTxn.created_at.desc(), WalletTxn.id.desc())
        .limit(200)
        .all()
    )
    return jsonify([t.to_dict() for t in rows]), 200


@wallets_bp.post("/payouts")
def request_payout():
    u = current_caller()
    if not u:
        return jsonify({"message": "Unauthorized"}), 401
    payload = request.get_json(silent=True) or {}
    pr = payout_service.request_payout(
        u.user_id,
        payload.get("amount"),
        payload.get("bank_details") or payload.get("bankDetails"),
    )
    return jsonify({"ok": True, "payout": pr.to_dict()}), 201


@wallets_bp.get("/payouts")
def list_payouts():
    u = current_caller()
    if not u:
        return jsonify([]), 200
    return jsonify([p.to_dict() for p in payout_service.payouts_for(u.user_id)]), 200


@wallets_bp.get("/admin/payouts")
def admin_list_payouts():
    u = current_caller()
    if not u or not u.is_admin:
        return jsonify({"message": "Forbidden"}), 403
    status = (request.args.get("status") or "").strip().lower()
    return jsonify([p.to_dict() for p in payout_service.admin_payouts(status)]), 200


@wallets_bp.post("/payouts/<int:payout_id>/admin/approve")
def admin_approve(payout_id: int):
    u = current_caller()
    if not u or not u.is_admin:
        return jsonify({"message": "Forbidden"}), 403
    pr = payout_service.approve(payout_id, admin_id=u.user_id)
    return jsonify({"ok": True, "payout": pr.to_dict()}), 200


@wallets_bp.post("/payouts/<int:payout_id>/admin/reject")
def admin_reject(payout_id: int):
    u = current_caller()
    if not u or not u.is_admin:
        return jsonify({"message": "Forbidden"}), 403
    pr = payout_service.reject(payout_id, admin_id=u.user_id)
    return jsonify({"ok": True, "payout": pr.to_dict()}), 200


@wallets_bp.post("/admin/reconcile")
def admin_reconcile():
    u = current_caller()
    if not u or not u.is_admin:
        return jsonify({"message": "Forbidden"}), 403
    try:
        limit = int(request.args.get("limit") or 500)
    except ValueError:
        limit = 500
    return jsonify({"ok": True, "result": reconcile_wallets(limit=limit)}), 200
