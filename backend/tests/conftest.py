import json
from decimal import Decimal

import pytest

from gigpay import create_app
from gigpay.extensions import db as _db
from gigpay.models import Contract, Payment, PaymentStatus
from gigpay.utils import wallets
from gigpay.utils.jwt_utils import create_access_token
from gigpay.utils.signature import compute_signature

WEBHOOK_SECRET = "whsec_test_0123456789"
CLIENT_ID = 1
FREELANCER_ID = 2
ADMIN_ID = 99


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "SECRET_KEY": "test-secret-key-0123456789abcdefghijkl",
        "CASHFREE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "CASHFREE_APP_ID": "test-app-id",
        "CASHFREE_SECRET_KEY": "test-cf-secret",
        "CASHFREE_API_URL": "https://sandbox.cashfree.test/pg",
        "PLATFORM_FEE_RATE": Decimal("0.10"),
        "RESERVE_FLOOR": Decimal("100.00"),
        "MINIMUM_PAYOUT": Decimal("0.00"),
    })
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def auth_headers(app):
    def _headers(user_id, role="user"):
        return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}
    return _headers


@pytest.fixture
def client_headers(auth_headers):
    return auth_headers(CLIENT_ID, "client")


@pytest.fixture
def freelancer_headers(auth_headers):
    return auth_headers(FREELANCER_ID, "freelancer")


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(ADMIN_ID, "admin")


@pytest.fixture
def contract(db):
    c = Contract(title="Landing page", client_id=CLIENT_ID, freelancer_id=FREELANCER_ID,
                 total_amount=Decimal("1000.00"), status="active")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def make_payment(db, contract):
    def _make(amount="200.00", payment_type="milestone", status=PaymentStatus.PENDING, order_id=None):
        p = Payment(
            contract_id=contract.id,
            client_id=contract.client_id,
            freelancer_id=contract.freelancer_id,
            amount=Decimal(amount),
            payment_type=payment_type,
            status=PaymentStatus(status).value,
        )
        db.session.add(p)
        db.session.flush()
        p.processor_order_id = order_id or p.id
        db.session.commit()
        return p
    return _make


@pytest.fixture
def fund_wallet(db):
    def _fund(freelancer_id, amount, reference="seed"):
        wallets.credit(freelancer_id, Decimal(amount), kind="payment_credit", reference=reference,
                       idempotency_key=f"seed:{freelancer_id}:{reference}")
        db.session.commit()
        return wallets.get_wallet(freelancer_id)
    return _fund


@pytest.fixture
def paid_event():
    def _event(order_id, payment_id="cf_pay_1", event_type="payment_link.paid"):
        return {
            "event_type": event_type,
            "payment_link_id": f"link_{order_id}",
            "link_status": "PAID",
            "link_meta": {"order_id": order_id},
            "payment_details": {"payment_id": payment_id},
        }
    return _event


@pytest.fixture
def post_webhook(client):
    """POST a payload signed with the shared secret (or an explicit signature)."""
    def _post(payload, signature=None, secret=WEBHOOK_SECRET):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        sig = compute_signature(body, secret) if signature is None else signature
        headers = {"Content-Type": "application/json"}
        if sig:
            headers["X-Webhook-Signature"] = sig
        return client.post("/payments/webhook", data=body, headers=headers)
    return _post
