from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from gigpay.errors import InsufficientFunds, InvalidTransition, PayoutValidationError, StoreUnavailable
from gigpay.models import Notification, PayoutRequest, WalletTxn
from gigpay.services import payouts
from gigpay.utils import wallets

from conftest import ADMIN_ID, FREELANCER_ID

BANK = {"account_number": "001122334455", "ifsc_code": "hdfc0001234", "account_name": "A. Freelancer"}


class TestRequestPayout:
    def test_request_earmarks_amount(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "150.00")
        pr = payouts.request_payout(FREELANCER_ID, "40.00", BANK)

        assert pr.status == "pending"
        assert pr.amount == Decimal("40.00")
        assert pr.bank_details["ifsc_code"] == "HDFC0001234"
        w = wallets.get_wallet(FREELANCER_ID)
        assert w.available_balance == Decimal("110.00")
        assert w.reserved_balance == Decimal("40.00")
        assert WalletTxn.query.filter_by(kind="payout_request", reference=f"payout:{pr.id}").count() == 1

    def test_second_request_blocked_by_the_floor(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "150.00")
        payouts.request_payout(FREELANCER_ID, "40.00", BANK)
        assert wallets.get_wallet(FREELANCER_ID).available_balance == Decimal("110.00")

        with pytest.raises(InsufficientFunds):
            payouts.request_payout(FREELANCER_ID, "20.00", BANK)
        assert wallets.get_wallet(FREELANCER_ID).available_balance == Decimal("110.00")
        assert PayoutRequest.query.count() == 1

    def test_request_exactly_to_the_floor(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "150.00")
        payouts.request_payout(FREELANCER_ID, "50.00", BANK)
        assert wallets.get_wallet(FREELANCER_ID).available_balance == Decimal("100.00")

    def test_insufficient_funds_leaves_no_trace(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "150.00")
        with pytest.raises(InsufficientFunds) as exc:
            payouts.request_payout(FREELANCER_ID, "60.00", BANK)

        assert "minimum balance of 100.00" in exc.value.message
        assert "up to 50.00" in exc.value.message
        assert PayoutRequest.query.count() == 0
        assert wallets.get_wallet(FREELANCER_ID).available_balance == Decimal("150.00")

    @pytest.mark.parametrize("amount", [None, "abc", "0", "-5", "10.001", True, "1e30", "1000000000000", "NaN"])
    def test_invalid_amount(self, db, fund_wallet, amount):
        fund_wallet(FREELANCER_ID, "500.00")
        with pytest.raises(PayoutValidationError):
            payouts.request_payout(FREELANCER_ID, amount, BANK)
        assert PayoutRequest.query.count() == 0

    @pytest.mark.parametrize("bank", [None, {}, {"account_number": "123"}, {"ifsc_code": "HDFC0001"}, "acct"])
    def test_bank_details_required(self, db, fund_wallet, bank):
        fund_wallet(FREELANCER_ID, "500.00")
        with pytest.raises(PayoutValidationError):
            payouts.request_payout(FREELANCER_ID, "10.00", bank)

    def test_camel_case_bank_details(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "500.00")
        pr = payouts.request_payout(FREELANCER_ID, "10.00", {"accountNumber": "987654", "ifscCode": "SBIN0000001"})
        assert pr.bank_details == {"account_number": "987654", "ifsc_code": "SBIN0000001"}

    def test_minimum_payout_when_configured(self, app, db, fund_wallet):
        app.config["MINIMUM_PAYOUT"] = Decimal("50.00")
        fund_wallet(FREELANCER_ID, "500.00")
        with pytest.raises(PayoutValidationError):
            payouts.request_payout(FREELANCER_ID, "49.99", BANK)
        assert payouts.request_payout(FREELANCER_ID, "50.00", BANK).status == "pending"

    def test_store_failure_after_debit_rolls_back(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "150.00")
        boom = OperationalError("INSERT INTO wallet_txns", {}, Exception("database is locked"))
        with patch("gigpay.utils.wallets._journal", side_effect=boom):
            with pytest.raises(StoreUnavailable):
                payouts.request_payout(FREELANCER_ID, "40.00", BANK)

        assert PayoutRequest.query.count() == 0
        w = wallets.get_wallet(FREELANCER_ID)
        assert w.available_balance == Decimal("150.00")
        assert w.reserved_balance == Decimal("0.00")

    def test_repeat_request_at_the_floor_refused(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "150.00")
        payouts.request_payout(FREELANCER_ID, "50.00", BANK)
        with pytest.raises(InsufficientFunds):
            payouts.request_payout(FREELANCER_ID, "50.00", BANK)

        assert PayoutRequest.query.count() == 1
        assert wallets.get_wallet(FREELANCER_ID).available_balance == Decimal("100.00")


class TestDecisions:
    @pytest.fixture
    def pending(self, db, fund_wallet):
        fund_wallet(FREELANCER_ID, "150.00")
        return payouts.request_payout(FREELANCER_ID, "40.00", BANK)

    def test_approve(self, db, pending):
        pr = payouts.approve(pending.id, admin_id=ADMIN_ID)

        assert pr.status == "paid"
        assert pr.decided_by == ADMIN_ID
        assert pr.decided_at is not None
        w = wallets.get_wallet(FREELANCER_ID)
        assert w.available_balance == Decimal("110.00")
        assert w.reserved_balance == Decimal("0.00")
        assert w.paid_out_total == Decimal("40.00")

    def test_approve_twice_is_a_noop(self, db, pending):
        payouts.approve(pending.id, admin_id=ADMIN_ID)
        notes = Notification.query.count()
        pr = payouts.approve(pending.id, admin_id=ADMIN_ID)

        assert pr.status == "paid"
        assert wallets.get_wallet(FREELANCER_ID).paid_out_total == Decimal("40.00")
        assert Notification.query.count() == notes

    def test_reject_returns_funds(self, db, pending):
        pr = payouts.reject(pending.id, admin_id=ADMIN_ID)

        assert pr.status == "rejected"
        w = wallets.get_wallet(FREELANCER_ID)
        assert w.available_balance == Decimal("150.00")
        assert w.reserved_balance == Decimal("0.00")
        assert w.total_earned == Decimal("150.00")
        assert WalletTxn.query.filter_by(kind="payout_reversal").count() == 1

    def test_reject_after_approve_refused(self, db, pending):
        payouts.approve(pending.id, admin_id=ADMIN_ID)
        with pytest.raises(InvalidTransition):
            payouts.reject(pending.id, admin_id=ADMIN_ID)
        assert wallets.get_wallet(FREELANCER_ID).paid_out_total == Decimal("40.00")

    def test_approve_after_reject_refused(self, db, pending):
        payouts.reject(pending.id, admin_id=ADMIN_ID)
        with pytest.raises(InvalidTransition):
            payouts.approve(pending.id, admin_id=ADMIN_ID)
        assert wallets.get_wallet(FREELANCER_ID).available_balance == Decimal("150.00")

    def test_freelancer_notified(self, db, pending):
        payouts.approve(pending.id, admin_id=ADMIN_ID)
        messages = [n.message for n in Notification.query.filter_by(user_id=FREELANCER_ID, category="payout")]
        assert any("approved" in m for m in messages)
