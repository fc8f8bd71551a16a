from datetime import datetime
from decimal import Decimal

from gigpay.extensions import db


class FreelancerWallet(db.Model):
    __tablename__ = "freelancer_wallets"

    id = db.Column(db.Integer, primary_key=True)
    freelancer_id = db.Column(db.Integer, nullable=False, unique=True, index=True)

    available_balance = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    # Earmarked by pending payout requests.
    reserved_balance = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total_earned = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    paid_out_total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("available_balance >= 0", name="ck_wallets_available_non_negative"),
        db.CheckConstraint("reserved_balance >= 0", name="ck_wallets_reserved_non_negative"),
    )

    def to_dict(self):
        return {
            "freelancer_id": int(self.freelancer_id),
            "available_balance": str(self.available_balance or Decimal("0.00")),
            "reserved_balance": str(self.reserved_balance or Decimal("0.00")),
            "total_earned": str(self.total_earned or Decimal("0.00")),
            "paid_out_total": str(self.paid_out_total or Decimal("0.00")),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
