"""
ledger.py — Points ledger

All balance changes go through this module. Each change is one conditional
UPDATE on the user row paired with exactly one appended Transaction row, so

    points_balance == total_points_earned - total_points_spent

holds for every user after every call.

These helpers never commit. The calling operation wraps them in
`unit_of_work(db)`, which makes a transfer (debit + credit) and any state
change around it a single database transaction: a failed debit raises
before anything else is written, and any later error rolls the whole unit
back.

Concurrency: the debit is `balance = balance - n WHERE balance >= n`, checked
by rowcount. Two concurrent debits of the same user serialize on the row and
the second one re-evaluates the condition against the committed balance, so
there are no lost updates and no double spend.
"""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import InsufficientBalance, InvalidArgument, NotFound
from app.core.logging import get_logger
from app.database.models import Transaction, TransactionType, User
from app.services.actor import Actor, CourseId, PackageId, ProjectId, UserId, require_active

logger = get_logger(__name__)


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidArgument("Points must be a whole number")
    if amount <= 0:
        raise InvalidArgument("Points amount must be positive")
    return amount


def _record(
    db: Session,
    user_id: UserId,
    type_: TransactionType,
    amount: int,
    description: str,
    project_id: Optional[ProjectId] = None,
    package_id: Optional[PackageId] = None,
    course_id: Optional[CourseId] = None,
) -> Transaction:
    tx = Transaction(
        user_id=user_id,
        type=type_.value,
        amount=amount,
        description=description,
        project_id=project_id,
        package_id=package_id,
        course_id=course_id,
    )
    db.add(tx)
    db.flush()
    return tx


def get_balance(db: Session, user_id: UserId) -> int:
    balance = db.query(User.points_balance).filter(User.id == user_id).scalar()
    if balance is None:
        raise NotFound(f"User {user_id} not found")
    return balance


def credit(
    db: Session,
    user_id: UserId,
    amount: int,
    description: str,
    type_: TransactionType = TransactionType.EARN,
    project_id: Optional[ProjectId] = None,
    package_id: Optional[PackageId] = None,
    course_id: Optional[CourseId] = None,
) -> Transaction:
    amount = _check_amount(amount)
    if type_ == TransactionType.SPEND:
        raise InvalidArgument("A credit cannot be recorded as spend")

    updated = (
        db.query(User)
        .filter(User.id == user_id)
        .update(
            {
                User.points_balance: User.points_balance + amount,
                User.total_points_earned: User.total_points_earned + amount,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        raise NotFound(f"User {user_id} not found")

    tx = _record(db, user_id, type_, amount, description, project_id, package_id, course_id)
    logger.info("Credited %s points to user %s (%s): %s", amount, user_id, type_.value, description)
    return tx


def debit(
    db: Session,
    user_id: UserId,
    amount: int,
    description: str,
    project_id: Optional[ProjectId] = None,
    package_id: Optional[PackageId] = None,
    course_id: Optional[CourseId] = None,
) -> Transaction:
    amount = _check_amount(amount)

    updated = (
        db.query(User)
        .filter(User.id == user_id, User.points_balance >= amount)
        .update(
            {
                User.points_balance: User.points_balance - amount,
                User.total_points_spent: User.total_points_spent + amount,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        balance = get_balance(db, user_id)
        logger.warning("Refused debit of %s points from user %s (balance %s)", amount, user_id, balance)
        raise InsufficientBalance(f"Insufficient points: balance {balance}, required {amount}")

    tx = _record(db, user_id, TransactionType.SPEND, amount, description, project_id, package_id, course_id)
    logger.info("Debited %s points from user %s: %s", amount, user_id, description)
    return tx


def transfer(
    db: Session,
    from_user_id: UserId,
    to_user_id: Optional[UserId],
    amount: int,
    description: str,
    credit_description: Optional[str] = None,
    project_id: Optional[ProjectId] = None,
    course_id: Optional[CourseId] = None,
) -> List[Transaction]:
    """Move points from one user to another, or into a sink when `to_user_id` is None.

    The debit runs first; when it raises, no credit is attempted.
    """
    if to_user_id is not None and to_user_id == from_user_id:
        raise InvalidArgument("Cannot transfer points to the same user")

    rows = [debit(db, from_user_id, amount, description, project_id=project_id, course_id=course_id)]
    if to_user_id is not None:
        rows.append(
            credit(
                db,
                to_user_id,
                amount,
                credit_description or description,
                project_id=project_id,
                course_id=course_id,
            )
        )
    return rows


def admin_adjust(db: Session, user_id: UserId, signed_amount: int, reason: str) -> Transaction:
    if isinstance(signed_amount, bool) or not isinstance(signed_amount, int):
        raise InvalidArgument("Points must be a whole number")
    if signed_amount == 0:
        raise InvalidArgument("Adjustment amount cannot be zero")

    description = f"Admin adjustment: {reason}" if reason else "Admin adjustment"
    if signed_amount > 0:
        return credit(db, user_id, signed_amount, description)
    return debit(db, user_id, -signed_amount, description)


def list_transactions(db: Session, actor: Actor) -> List[Transaction]:
    actor = require_active(actor)
    return (
        db.query(Transaction)
        .filter(Transaction.user_id == actor.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )


def reconstruct_balance(db: Session, user_id: UserId) -> int:
    """Replay the transaction log for a user starting from zero."""
    rows = (
        db.query(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.user_id == user_id)
        .group_by(Transaction.type)
        .all()
    )
    totals = {t: int(total) for t, total in rows}
    inflow = totals.get(TransactionType.PURCHASE.value, 0) + totals.get(TransactionType.EARN.value, 0)
    return inflow - totals.get(TransactionType.SPEND.value, 0)
