from __future__ import annotations

from flask import current_app

from gigpay.extensions import db
from gigpay.models import Notification


def notify(user_id: int, message: str, category: str = "payment") -> Notification | None:
    """Best-effort, fire-and-forget delivery to a user's inbox.

    Commits on its own, so call it only after the financial unit of work has
    been committed. Never raises.
    """
    try:
        n = Notification(user_id=int(user_id), category=category, message=message or "", read=False)
        db.session.add(n)
        db.session.commit()
        return n
    except Exception:
        db.session.rollback()
        current_app.logger.exception("notification to user %s failed (category=%s)", user_id, category)
        return None
