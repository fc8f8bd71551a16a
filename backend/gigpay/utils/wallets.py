from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from gigpay.errors import InsufficientFunds, LedgerInconsistency
from gigpay.extensions import db
from gigpay.models import FreelancerWallet, WalletTxn
from gigpay.utils.money import ZERO

# Every balance change below is one conditional UPDATE on the wallet row, so
# concurrent writers to the same freelancer serialize in the store and never
# lose an increment. None of these helpers commit; the caller owns the unit of work.


def _dialect_insert():
    name = db.session.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    return None


def get_wallet(freelancer_id: int) -> FreelancerWallet | None:
    stmt = (
        select(FreelancerWallet)
        .filter_by(freelancer_id=int(freelancer_id))
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def ensure_wallet(freelancer_id: int) -> None:
    """Create the wallet row with zero balances if it is missing."""
    now = datetime.utcnow()
    values = dict(
        freelancer_id=int(freelancer_id),
        available_balance=ZERO,
        reserved_balance=ZERO,
        total_earned=ZERO,
        paid_out_total=ZERO,
        created_at=now,
        updated_at=now,
    )
    insert = _dialect_insert()
    if insert is not None:
        stmt = insert(FreelancerWallet).values(**values).on_conflict_do_nothing(index_elements=["freelancer_id"])
        db.session.execute(stmt)
        return

    if get_wallet(freelancer_id) is not None:
        return
    try:
        with db.session.begin_nested():
            db.session.add(FreelancerWallet(**values))
    except IntegrityError:
        # Created concurrently; the row now exists.
        pass


def _journal(*, freelancer_id: int, direction: str, amount: Decimal, kind: str, reference: str,
             idempotency_key: str, note: str = "") -> WalletTxn:
    txn = WalletTxn(
        freelancer_id=int(freelancer_id),
        direction=direction,
        amount=amount,
        kind=kind,
        reference=(reference or "")[:80],
        idempotency_key=idempotency_key[:160],
        note=(note or "")[:240],
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def find_txn(idempotency_key: str) -> WalletTxn | None:
    return WalletTxn.query.filter_by(idempotency_key=idempotency_key[:160]).first()


def credit(freelancer_id: int, net_amount: Decimal, *, kind: str, reference: str,
           idempotency_key: str, note: str = "") -> WalletTxn:
    """Upsert the wallet, then increment available_balance and total_earned.

    Posting the same idempotency_key twice returns the first journal row and
    leaves the balances alone.
    """
    amount = Decimal(net_amount)
    if amount <= 0:
        raise ValueError("credit amount must be positive")

    existing = find_txn(idempotency_key)
    if existing:
        return existing

    ensure_wallet(freelancer_id)
    result = db.session.execute(
        update(FreelancerWallet)
        .where(FreelancerWallet.freelancer_id == int(freelancer_id))
        .values(
            available_balance=FreelancerWallet.available_balance + amount,
            total_earned=FreelancerWallet.total_earned + amount,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise LedgerInconsistency(f"wallet for freelancer {freelancer_id} could not be credited")

    return _journal(
        freelancer_id=freelancer_id,
        direction="credit",
        amount=amount,
        kind=kind,
        reference=reference,
        idempotency_key=idempotency_key,
        note=note,
    )


def debit(freelancer_id: int, amount: Decimal, *, reserve_floor: Decimal, reference: str,
          idempotency_key: str, note: str = "") -> WalletTxn:
    """Earmark ``amount`` for a payout: move it from available to reserved.

    The reserve-floor check and the decrement are a single conditional
    UPDATE; when it matches no row nothing changed and InsufficientFunds is raised.
    """
    amt = Decimal(amount)
    floor = Decimal(reserve_floor)
    if amt <= 0:
        raise ValueError("debit amount must be positive")

    result = db.session.execute(
        update(FreelancerWallet)
        .where(
            FreelancerWallet.freelancer_id == int(freelancer_id),
            FreelancerWallet.available_balance - amt >= floor,
        )
        .values(
            available_balance=FreelancerWallet.available_balance - amt,
            reserved_balance=FreelancerWallet.reserved_balance + amt,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        w = get_wallet(freelancer_id)
        available = Decimal(w.available_balance) if w is not None else ZERO
        raise InsufficientFunds(available=available, requested=amt, reserve_floor=floor)

    return _journal(
        freelancer_id=freelancer_id,
        direction="debit",
        amount=amt,
        kind="payout_request",
        reference=reference,
        idempotency_key=idempotency_key,
        note=note,
    )


def release_reserved(freelancer_id: int, amount: Decimal, *, reference: str, idempotency_key: str,
                     note: str = "") -> WalletTxn:
    """Return an earmarked amount to available_balance (payout rejected)."""
    amt = Decimal(amount)
    existing = find_txn(idempotency_key)
    if existing:
        return existing

    result = db.session.execute(
        update(FreelancerWallet)
        .where(
            FreelancerWallet.freelancer_id == int(freelancer_id),
            FreelancerWallet.reserved_balance >= amt,
        )
        .values(
            reserved_balance=FreelancerWallet.reserved_balance - amt,
            available_balance=FreelancerWallet.available_balance + amt,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise LedgerInconsistency()

    return _journal(
        freelancer_id=freelancer_id,
        direction="credit",
        amount=amt,
        kind="payout_reversal",
        reference=reference,
        idempotency_key=idempotency_key,
        note=note,
    )


def settle_reserved(freelancer_id: int, amount: Decimal) -> None:
    """Mark an earmarked amount as paid out (payout approved)."""
    amt = Decimal(amount)
    result = db.session.execute(
        update(FreelancerWallet)
        .where(
            FreelancerWallet.freelancer_id == int(freelancer_id),
            FreelancerWallet.reserved_balance >= amt,
        )
        .values(
            reserved_balance=FreelancerWallet.reserved_balance - amt,
            paid_out_total=FreelancerWallet.paid_out_total + amt,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise LedgerInconsistency()
