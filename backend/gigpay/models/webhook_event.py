from datetime import datetime

from gigpay.extensions import db


class WebhookAuditEntry(db.Model):
    """Append-only copy of every authenticated processor event."""

    __tablename__ = "payment_webhooks"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(32), nullable=False, default="cashfree")
    source = db.Column(db.String(16), nullable=False, default="webhook")  # webhook | poll

    processor_order_id = db.Column(db.String(64), nullable=False, index=True)
    event_type = db.Column(db.String(64), nullable=False)
    signature = db.Column(db.String(160), nullable=True)
    raw_payload = db.Column(db.LargeBinary, nullable=False)

    outcome = db.Column(db.String(32), nullable=True)
    received_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    processed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.Index("ix_payment_webhooks_order_event", "processor_order_id", "event_type"),
    )

    def to_dict(self):
        return {
            "id": int(self.id),
            "provider": self.provider,
            "source": self.source,
            "order_id": self.processor_order_id,
            "event_type": self.event_type,
            "outcome": self.outcome or "",
            "received_at": self.received_at.isoformat() if self.received_at else None,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }


class RejectedWebhook(db.Model):
    __tablename__ = "rejected_webhooks"

    id = db.Column(db.Integer, primary_key=True)
    reason = db.Column(db.String(64), nullable=False)
    remote_addr = db.Column(db.String(64), nullable=True)
    signature = db.Column(db.String(160), nullable=True)
    raw_payload = db.Column(db.LargeBinary, nullable=True)

    received_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
