import enum
from datetime import datetime

from gigpay.extensions import db


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REJECTED = "rejected"


PAYOUT_TRANSITIONS = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.PAID, PayoutStatus.REJECTED}),
}


class PayoutRequest(db.Model):
    __tablename__ = "payout_requests"

    id = db.Column(db.Integer, primary_key=True)
    freelancer_id = db.Column(db.Integer, nullable=False, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PayoutStatus.PENDING.value, index=True)

    bank_details = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    decided_at = db.Column(db.DateTime, nullable=True)
    decided_by = db.Column(db.Integer, nullable=True)

    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payout_requests_amount_positive"),
    )

    def masked_bank_details(self) -> dict:
        details = dict(self.bank_details or {})
        number = str(details.get("account_number") or "")
        if number:
            details["account_number"] = ("*" * max(0, len(number) - 4)) + number[-4:]
        return details

    def to_dict(self):
        return {
            "id": int(self.id),
            "freelancer_id": int(self.freelancer_id),
            "amount": str(self.amount),
            "status": self.status,
            "bank_details": self.masked_bank_details(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
        }
