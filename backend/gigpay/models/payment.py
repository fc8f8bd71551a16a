import enum
import uuid
from datetime import datetime

from gigpay.extensions import db


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentType(str, enum.Enum):
    ADVANCE = "advance"
    COMPLETION = "completion"
    MILESTONE = "milestone"


# Every legal move of a payment; anything not listed is a no-op.
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.PAID,
        PaymentStatus.FAILED,
        PaymentStatus.EXPIRED,
        PaymentStatus.CANCELLED,
    }),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS.get(current, frozenset())


def new_payment_id() -> str:
    return f"pay_{uuid.uuid4().hex[:24]}"


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.String(40), primary_key=True, default=new_payment_id)
    contract_id = db.Column(db.Integer, db.ForeignKey("contracts.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, nullable=False, index=True)
    freelancer_id = db.Column(db.Integer, nullable=False, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    payment_type = db.Column(db.String(16), nullable=False, default=PaymentType.MILESTONE.value)
    status = db.Column(db.String(16), nullable=False, default=PaymentStatus.PENDING.value, index=True)

    processor_order_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    processor_payment_id = db.Column(db.String(64), nullable=True)
    payment_link = db.Column(db.String(512), nullable=True)

    platform_fee = db.Column(db.Numeric(14, 2), nullable=True)
    net_amount = db.Column(db.Numeric(14, 2), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    paid_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )

    contract = db.relationship("Contract", lazy="joined")

    @property
    def status_enum(self) -> PaymentStatus:
        return PaymentStatus(self.status)

    def to_dict(self):
        return {
            "id": self.id,
            "contract_id": int(self.contract_id),
            "client_id": int(self.client_id),
            "freelancer_id": int(self.freelancer_id),
            "amount": str(self.amount),
            "currency": self.currency,
            "payment_type": self.payment_type,
            "status": self.status,
            "order_id": self.processor_order_id or "",
            "processor_payment_id": self.processor_payment_id or "",
            "payment_link": self.payment_link or "",
            "platform_fee": str(self.platform_fee) if self.platform_fee is not None else None,
            "net_amount": str(self.net_amount) if self.net_amount is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
