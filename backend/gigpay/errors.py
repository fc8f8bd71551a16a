from __future__ import annotations

from decimal import Decimal


class GigPayError(Exception):
    status_code = 400
    message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self) -> dict:
        return {"ok": False, "message": self.message}


class InvalidSignature(GigPayError):
    status_code = 400
    message = "Invalid signature"


class MalformedWebhook(GigPayError):
    status_code = 400
    message = "Malformed webhook payload"


class StoreUnavailable(GigPayError):
    """Transient store failure; the caller should retry."""

    status_code = 500
    message = "Temporary storage failure, retry later"


class NotFound(GigPayError):
    status_code = 404
    message = "Not found"


class InvalidTransition(GigPayError):
    status_code = 409
    message = "Invalid status transition"


class ValidationError(GigPayError):
    status_code = 400
    message = "Invalid request"


class PayoutValidationError(ValidationError):
    message = "Invalid payout request"


class LedgerInconsistency(GigPayError):
    status_code = 409
    message = "Wallet does not hold the earmarked amount"


class ProcessorError(GigPayError):
    status_code = 502
    message = "Payment processor request failed"


class InsufficientFunds(GigPayError):
    status_code = 400

    def __init__(self, available: Decimal, requested: Decimal, reserve_floor: Decimal):
        self.available = available
        self.requested = requested
        self.reserve_floor = reserve_floor
        withdrawable = max(Decimal("0.00"), available - reserve_floor)
        super().__init__(
            f"Insufficient balance for this payout request. A minimum balance of "
            f"{reserve_floor:.2f} must be maintained in your wallet; you can withdraw "
            f"up to {withdrawable:.2f}."
        )

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "message": self.message,
            "available_balance": str(self.available),
            "requested": str(self.requested),
            "reserve_floor": str(self.reserve_floor),
        }
