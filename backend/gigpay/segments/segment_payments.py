from __future__ import annotations

from flask import Blueprint, jsonify, request

from gigpay.extensions import db
from gigpay.models import Contract
from gigpay.services import payments as payment_service
from gigpay.utils.jwt_utils import current_caller

payments_bp = Blueprint("payments_bp", __name__, url_prefix="/api/payments")


def _can_see(caller, payment) -> bool:
    return caller.is_admin or caller.user_id in (int(payment.client_id), int(payment.freelancer_id))


@payments_bp.post("")
def create_payment():
    u = current_caller()
    if not u:
        return jsonify({"message": "Unauthorized"}), 401
    data = request.get_json(silent=True) or {}

    contract_id = data.get("contract_id") or data.get("contractId") or data.get("orderRef")
    try:
        contract_id = int(contract_id)
    except (TypeError, ValueError):
        return jsonify({"message": "contract_id required"}), 400

    contract = db.session.get(Contract, contract_id)
    if contract is not None and not (u.is_admin or int(contract.client_id) == u.user_id):
        return jsonify({"message": "Forbidden"}), 403

    payment = payment_service.create_payment(
        contract_id=contract_id,
        amount=data.get("amount"),
        payment_type=data.get("payment_type") or data.get("paymentType") or "",
        customer_name=(data.get("customer_name") or data.get("customerName") or "").strip(),
        customer_email=(data.get("customer_email") or data.get("customerEmail") or "").strip(),
        customer_phone=(data.get("customer_phone") or data.get("customerPhone") or "").strip(),
        return_url=(data.get("return_url") or data.get("returnUrl") or "").strip(),
    )
    return jsonify({
        "ok": True,
        "order_id": payment.processor_order_id,
        "payment_link": payment.payment_link or "",
        "payment": payment.to_dict(),
    }), 201


@payments_bp.get("")
def payment_history():
    u = current_caller()
    if not u:
        return jsonify([]), 200
    rows = payment_service.payment_history(u.user_id)
    return jsonify([p.to_dict() for p in rows]), 200


@payments_bp.get("/<payment_id>")
def get_payment(payment_id: str):
    u = current_caller()
    if not u:
        return jsonify({"message": "Unauthorized"}), 401
    payment = payment_service.get_payment(payment_id)
    if not _can_see(u, payment):
        return jsonify({"message": "Forbidden"}), 403
    return jsonify({"ok": True, "payment": payment.to_dict()}), 200


@payments_bp.post("/<payment_id>/verify")
def verify_payment(payment_id: str):
    """Pull the order status from the processor instead of waiting for the webhook."""
    u = current_caller()
    if not u:
        return jsonify({"message": "Unauthorized"}), 401
    payment = payment_service.get_payment(payment_id)
    if not _can_see(u, payment):
        return jsonify({"message": "Forbidden"}), 403
    result = payment_service.sync_payment(payment)
    payment = payment_service.get_payment(payment_id)
    return jsonify({"ok": True, "result": result.to_dict(), "payment": payment.to_dict()}), 200
