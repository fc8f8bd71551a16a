from datetime import datetime

from gigpay.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    category = db.Column(db.String(16), nullable=False, default="payment")  # payment | payout
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "category": self.category,
            "message": self.message or "",
            "read": bool(self.read),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
