from datetime import datetime

from gigpay.extensions import db


class WalletTxn(db.Model):
    __tablename__ = "wallet_txns"

    id = db.Column(db.Integer, primary_key=True)
    freelancer_id = db.Column(db.Integer, nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False)  # credit/debit
    amount = db.Column(db.Numeric(14, 2), nullable=False)

    kind = db.Column(db.String(32), nullable=False)  # payment_credit, payout_request, payout_reversal
    reference = db.Column(db.String(80), nullable=True, index=True)
    idempotency_key = db.Column(db.String(160), nullable=False, unique=True, index=True)

    note = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "freelancer_id": int(self.freelancer_id),
            "direction": self.direction,
            "amount": str(self.amount),
            "kind": self.kind,
            "reference": self.reference or "",
            "note": self.note or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
