from __future__ import annotations

from flask import Blueprint, jsonify, request

from gigpay.services.webhooks import handle_webhook

webhooks_bp = Blueprint("webhooks_bp", __name__)

SIGNATURE_HEADER = "X-Webhook-Signature"


@webhooks_bp.post("/payments/webhook")
@webhooks_bp.post("/api/webhooks/cashfree")
def cashfree_webhook():
    """Processor callback. 200 for applied / duplicate / unknown order,
    400 for bad signature or body, 500 when the store is unavailable."""
    raw = request.get_data(cache=False) or b""
    result = handle_webhook(raw, request.headers.get(SIGNATURE_HEADER), remote_addr=request.remote_addr)
    return jsonify({"status": "success", "result": result.to_dict()}), 200
