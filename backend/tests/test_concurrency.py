"""Same-wallet races run on real threads against a file-backed SQLite store.

Each worker pushes its own app context (or goes through the test client), so
every thread gets its own session and connection.
"""
import json
import threading
from decimal import Decimal

import pytest

from gigpay import create_app
from gigpay.errors import InsufficientFunds
from gigpay.extensions import db
from gigpay.models import Contract, Payment, PayoutRequest, WalletTxn, WebhookAuditEntry
from gigpay.services import payouts
from gigpay.utils import wallets
from gigpay.utils.signature import compute_signature

from conftest import CLIENT_ID, FREELANCER_ID, WEBHOOK_SECRET

WORKERS = 8
BANK = {"account_number": "001122334455", "ifsc_code": "HDFC0001234"}


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        "TESTING": True,
        "INSTANCE_DIR": str(tmp_path),
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'gigpay.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30, "check_same_thread": False}},
        "SECRET_KEY": "test-secret-key-0123456789abcdefghijkl",
        "CASHFREE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "PLATFORM_FEE_RATE": Decimal("0.10"),
        "RESERVE_FLOOR": Decimal("100.00"),
        "MINIMUM_PAYOUT": Decimal("0.00"),
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def run_together(fn, n=WORKERS):
    """Start ``n`` threads on a barrier and collect fn(i) or the exception it raised."""
    barrier = threading.Barrier(n)
    results = [None] * n

    def worker(i):
        barrier.wait()
        try:
            results[i] = fn(i)
        except Exception as e:  # surfaced through the results list
            results[i] = e

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert not any(t.is_alive() for t in threads)
    return results


def _seed_wallet(app, amount):
    with app.app_context():
        wallets.credit(FREELANCER_ID, Decimal(amount), kind="payment_credit", reference="seed",
                       idempotency_key=f"seed:{FREELANCER_ID}")
        db.session.commit()


def _seed_payments(app, count, amount="200.00"):
    with app.app_context():
        c = Contract(title="Race", client_id=CLIENT_ID, freelancer_id=FREELANCER_ID,
                     total_amount=Decimal("100000.00"), status="active")
        db.session.add(c)
        db.session.flush()
        ids = []
        for _ in range(count):
            p = Payment(contract_id=c.id, client_id=CLIENT_ID, freelancer_id=FREELANCER_ID,
                        amount=Decimal(amount), payment_type="milestone", status="pending")
            db.session.add(p)
            db.session.flush()
            p.processor_order_id = p.id
            ids.append(p.id)
        db.session.commit()
        return ids


def _signed_paid(order_id):
    body = json.dumps({
        "event_type": "payment_link.paid",
        "link_status": "PAID",
        "link_meta": {"order_id": order_id},
        "payment_details": {"payment_id": f"cf_{order_id}"},
    }).encode("utf-8")
    return body, {"Content-Type": "application/json",
                  "X-Webhook-Signature": compute_signature(body, WEBHOOK_SECRET)}


def test_parallel_payout_requests_hold_the_floor(file_app):
    _seed_wallet(file_app, "200.00")

    def request(_):
        with file_app.app_context():
            try:
                payouts.request_payout(FREELANCER_ID, "30.00", BANK)
                return "accepted"
            except InsufficientFunds:
                return "refused"

    results = run_together(request)

    assert results.count("accepted") == 3
    assert results.count("refused") == WORKERS - 3
    with file_app.app_context():
        w = wallets.get_wallet(FREELANCER_ID)
        assert w.available_balance == Decimal("110.00")
        assert w.reserved_balance == Decimal("90.00")
        assert w.available_balance + w.reserved_balance == Decimal("200.00")
        assert w.available_balance >= Decimal("100.00")
        assert PayoutRequest.query.count() == 3
        assert WalletTxn.query.filter_by(kind="payout_request").count() == 3


def test_simultaneous_duplicate_deliveries_credit_once(file_app):
    (order_id,) = _seed_payments(file_app, 1)
    body, headers = _signed_paid(order_id)

    def deliver(_):
        r = file_app.test_client().post("/payments/webhook", data=body, headers=headers)
        return r.status_code, r.get_json()["result"]["outcome"]

    results = run_together(deliver)

    assert [code for code, _ in results] == [200] * WORKERS
    assert [outcome for _, outcome in results].count("applied") == 1
    with file_app.app_context():
        w = wallets.get_wallet(FREELANCER_ID)
        assert w.available_balance == Decimal("180.00")
        assert w.total_earned == Decimal("180.00")
        assert WalletTxn.query.filter_by(kind="payment_credit").count() == 1
        assert WebhookAuditEntry.query.filter_by(processor_order_id=order_id).count() == WORKERS
        assert db.session.get(Payment, order_id).status == "paid"


def test_credits_and_payouts_interleaved(file_app):
    _seed_wallet(file_app, "150.00")
    order_ids = _seed_payments(file_app, WORKERS // 2)

    def step(i):
        if i % 2 == 0:
            body, headers = _signed_paid(order_ids[i // 2])
            return file_app.test_client().post("/payments/webhook", data=body, headers=headers).status_code
        with file_app.app_context():
            try:
                payouts.request_payout(FREELANCER_ID, "40.00", BANK)
                return "accepted"
            except InsufficientFunds:
                return "refused"

    results = run_together(step)

    assert results[0::2] == [200] * (WORKERS // 2)
    accepted = results[1::2].count("accepted")
    assert accepted >= 1
    credited = Decimal("150.00") + Decimal("180.00") * (WORKERS // 2)
    with file_app.app_context():
        w = wallets.get_wallet(FREELANCER_ID)
        assert w.reserved_balance == Decimal("40.00") * accepted
        assert w.available_balance + w.reserved_balance == credited
        assert w.available_balance >= Decimal("100.00")
        assert w.total_earned == credited
