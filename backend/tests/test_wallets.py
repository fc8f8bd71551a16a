from decimal import Decimal

import pytest

from gigpay.errors import InsufficientFunds, LedgerInconsistency
from gigpay.models import FreelancerWallet, WalletTxn
from gigpay.utils import wallets

FLOOR = Decimal("100.00")


def _credit(fid, amount, key):
    txn = wallets.credit(fid, Decimal(amount), kind="payment_credit", reference=key, idempotency_key=key)
    return txn


def _debit(fid, amount, key):
    return wallets.debit(fid, Decimal(amount), reserve_floor=FLOOR, reference=key, idempotency_key=key)


class TestCredit:
    def test_first_credit_creates_wallet(self, db):
        assert wallets.get_wallet(7) is None
        _credit(7, "90.00", "payment:a:credit")
        db.session.commit()

        w = wallets.get_wallet(7)
        assert w.available_balance == Decimal("90.00")
        assert w.total_earned == Decimal("90.00")
        assert w.reserved_balance == Decimal("0.00")
        assert FreelancerWallet.query.filter_by(freelancer_id=7).count() == 1

    def test_credits_accumulate(self, db):
        _credit(7, "90.00", "payment:a:credit")
        _credit(7, "180.00", "payment:b:credit")
        db.session.commit()

        w = wallets.get_wallet(7)
        assert w.available_balance == Decimal("270.00")
        assert w.total_earned == Decimal("270.00")
        assert FreelancerWallet.query.filter_by(freelancer_id=7).count() == 1

    def test_same_key_credits_once(self, db):
        first = _credit(7, "90.00", "payment:a:credit")
        db.session.commit()
        again = _credit(7, "90.00", "payment:a:credit")
        db.session.commit()

        assert again.id == first.id
        assert wallets.get_wallet(7).available_balance == Decimal("90.00")
        assert WalletTxn.query.count() == 1

    def test_ensure_wallet_is_idempotent(self, db):
        wallets.ensure_wallet(7)
        wallets.ensure_wallet(7)
        db.session.commit()
        assert FreelancerWallet.query.filter_by(freelancer_id=7).count() == 1

    def test_non_positive_credit_refused(self, db):
        with pytest.raises(ValueError):
            _credit(7, "0", "zero")


class TestDebit:
    def test_debit_down_to_the_floor(self, db, fund_wallet):
        fund_wallet(7, "150.00")
        _debit(7, "50.00", "payout:1:debit")
        db.session.commit()

        w = wallets.get_wallet(7)
        assert w.available_balance == Decimal("100.00")
        assert w.reserved_balance == Decimal("50.00")
        assert w.total_earned == Decimal("150.00")

    def test_debit_below_the_floor_changes_nothing(self, db, fund_wallet):
        fund_wallet(7, "150.00")
        with pytest.raises(InsufficientFunds) as exc:
            _debit(7, "50.01", "payout:1:debit")
        db.session.rollback()

        assert exc.value.available == Decimal("150.00")
        assert exc.value.requested == Decimal("50.01")
        assert "100.00" in exc.value.message
        w = wallets.get_wallet(7)
        assert w.available_balance == Decimal("150.00")
        assert w.reserved_balance == Decimal("0.00")
        assert WalletTxn.query.filter_by(direction="debit").count() == 0

    def test_debit_without_wallet(self, db):
        with pytest.raises(InsufficientFunds) as exc:
            _debit(7, "10.00", "payout:1:debit")
        assert exc.value.available == Decimal("0.00")

    def test_balance_never_below_floor_after_many_debits(self, db, fund_wallet):
        fund_wallet(7, "200.00")
        accepted = 0
        for i in range(5):
            try:
                _debit(7, "30.00", f"payout:{i}:debit")
                db.session.commit()
                accepted += 1
            except InsufficientFunds:
                db.session.rollback()
        assert accepted == 3
        assert wallets.get_wallet(7).available_balance == Decimal("110.00")


class TestReserved:
    def test_release_returns_amount_once(self, db, fund_wallet):
        fund_wallet(7, "150.00")
        _debit(7, "40.00", "payout:1:debit")
        wallets.release_reserved(7, Decimal("40.00"), reference="payout:1", idempotency_key="payout:1:reversal")
        wallets.release_reserved(7, Decimal("40.00"), reference="payout:1", idempotency_key="payout:1:reversal")
        db.session.commit()

        w = wallets.get_wallet(7)
        assert w.available_balance == Decimal("150.00")
        assert w.reserved_balance == Decimal("0.00")
        assert w.total_earned == Decimal("150.00")
        assert WalletTxn.query.filter_by(kind="payout_reversal").count() == 1

    def test_settle_moves_to_paid_out(self, db, fund_wallet):
        fund_wallet(7, "150.00")
        _debit(7, "40.00", "payout:1:debit")
        wallets.settle_reserved(7, Decimal("40.00"))
        db.session.commit()

        w = wallets.get_wallet(7)
        assert w.available_balance == Decimal("110.00")
        assert w.reserved_balance == Decimal("0.00")
        assert w.paid_out_total == Decimal("40.00")

    def test_settle_more_than_reserved(self, db, fund_wallet):
        fund_wallet(7, "150.00")
        with pytest.raises(LedgerInconsistency):
            wallets.settle_reserved(7, Decimal("10.00"))
