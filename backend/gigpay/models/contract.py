from datetime import datetime
from decimal import Decimal

from gigpay.extensions import db


class Contract(db.Model):
    __tablename__ = "contracts"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, default="")

    client_id = db.Column(db.Integer, nullable=False, index=True)
    freelancer_id = db.Column(db.Integer, nullable=False, index=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    status = db.Column(db.String(24), nullable=False, default="active")  # active/completed/cancelled

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": int(self.id),
            "title": self.title or "",
            "client_id": int(self.client_id),
            "freelancer_id": int(self.freelancer_id),
            "total_amount": str(self.total_amount or Decimal("0.00")),
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
