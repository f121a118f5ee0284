"""
Tests for the points ledger (credit / debit / transfer / admin adjustment).
"""

import pytest

from app.core.errors import InsufficientBalance, InvalidArgument, NotFound
from app.database.connection import unit_of_work
from app.database.models import Transaction, TransactionType, User
from app.services import ledger


def _totals(db, user_id):
    user = db.query(User).filter(User.id == user_id).one()
    return user.points_balance, user.total_points_earned, user.total_points_spent


def _tx_count(db, user_id):
    return db.query(Transaction).filter(Transaction.user_id == user_id).count()


def test_balance_invariant_holds_after_every_operation(db, make_user):
    a = make_user("company")
    b = make_user("intern")

    ops = [
        lambda: ledger.credit(db, a.id, 500, "top up", type_=TransactionType.PURCHASE),
        lambda: ledger.debit(db, a.id, 120, "spend"),
        lambda: ledger.transfer(db, a.id, b.id, 200, "reward"),
        lambda: ledger.credit(db, b.id, 30, "bonus"),
        lambda: ledger.transfer(db, b.id, None, 150, "course"),
        lambda: ledger.admin_adjust(db, a.id, -80, "correction"),
        lambda: ledger.admin_adjust(db, b.id, 5, "gift"),
    ]
    for op in ops:
        with unit_of_work(db):
            op()
        for uid in (a.id, b.id):
            balance, earned, spent = _totals(db, uid)
            assert balance == earned - spent
            assert balance >= 0
            assert ledger.reconstruct_balance(db, uid) == balance

    assert _totals(db, a.id) == (100, 500, 400)
    assert _totals(db, b.id) == (85, 235, 150)


def test_credit_records_one_transaction(db, intern):
    with unit_of_work(db):
        tx = ledger.credit(db, intern.id, 40, "bonus", project_id=None)
    assert tx.type == "earn"
    assert tx.amount == 40
    assert _tx_count(db, intern.id) == 1
    assert _totals(db, intern.id) == (40, 40, 0)


def test_debit_insufficient_leaves_no_trace(db, make_user):
    user = make_user("intern", balance=50)
    before = _totals(db, user.id)

    with pytest.raises(InsufficientBalance):
        with unit_of_work(db):
            ledger.debit(db, user.id, 51, "too much")

    assert _totals(db, user.id) == before
    assert _tx_count(db, user.id) == 0


def test_transfer_insufficient_does_not_credit(db, make_user):
    payer = make_user("company", balance=10)
    payee = make_user("intern")

    with pytest.raises(InsufficientBalance):
        with unit_of_work(db):
            ledger.transfer(db, payer.id, payee.id, 11, "reward")

    assert _totals(db, payer.id) == (10, 10, 0)
    assert _totals(db, payee.id) == (0, 0, 0)
    assert db.query(Transaction).count() == 0


def test_transfer_rolls_back_debit_when_credit_fails(db, make_user):
    payer = make_user("company", balance=100)

    with pytest.raises(NotFound):
        with unit_of_work(db):
            ledger.transfer(db, payer.id, 99999, 30, "reward")

    assert _totals(db, payer.id) == (100, 100, 0)
    assert db.query(Transaction).count() == 0


def test_transfer_creates_spend_and_earn_rows(db, make_user):
    payer = make_user("company", balance=100)
    payee = make_user("intern")

    with unit_of_work(db):
        rows = ledger.transfer(db, payer.id, payee.id, 60, "paid", credit_description="earned")

    assert [(r.user_id, r.type, r.amount) for r in rows] == [
        (payer.id, "spend", 60),
        (payee.id, "earn", 60),
    ]
    assert rows[1].description == "earned"


@pytest.mark.parametrize("amount", [0, -5, 2.5, True])
def test_amount_must_be_positive_integer(db, intern, amount):
    with pytest.raises(InvalidArgument):
        ledger.credit(db, intern.id, amount, "bad")
    with pytest.raises(InvalidArgument):
        ledger.debit(db, intern.id, amount, "bad")


def test_credit_unknown_user(db):
    with pytest.raises(NotFound):
        with unit_of_work(db):
            ledger.credit(db, 424242, 10, "ghost")


def test_admin_adjust_negative_beyond_balance_is_refused(db, make_user):
    user = make_user("intern", balance=50)

    with pytest.raises(InsufficientBalance):
        with unit_of_work(db):
            ledger.admin_adjust(db, user.id, -9999, "oops")

    assert _totals(db, user.id) == (50, 50, 0)


def test_admin_adjust_records_signed_type(db, make_user):
    user = make_user("intern", balance=50)
    with unit_of_work(db):
        up = ledger.admin_adjust(db, user.id, 25, "bonus")
        down = ledger.admin_adjust(db, user.id, -70, "clawback")

    assert (up.type, up.amount) == ("earn", 25)
    assert (down.type, down.amount) == ("spend", 70)
    assert _totals(db, user.id) == (5, 75, 70)


def test_admin_adjust_zero_is_invalid(db, intern):
    with pytest.raises(InvalidArgument):
        ledger.admin_adjust(db, intern.id, 0, "noop")


def test_transfer_to_self_is_invalid(db, make_user):
    user = make_user("company", balance=100)
    with pytest.raises(InvalidArgument):
        ledger.transfer(db, user.id, user.id, 10, "loop")


def test_list_transactions_newest_first(db, intern, as_actor):
    with unit_of_work(db):
        ledger.credit(db, intern.id, 10, "first")
        ledger.credit(db, intern.id, 20, "second")

    rows = ledger.list_transactions(db, as_actor(intern))
    assert [r.description for r in rows] == ["second", "first"]
