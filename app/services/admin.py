"""
admin.py — Moderation operations (admin only)
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import CascadeDeleteError, InvalidArgument, InvalidState, NotFound
from app.core.logging import get_logger
from app.database.connection import unit_of_work
from app.database.models import (
    Application,
    Course,
    CoursePurchase,
    CourseProgress,
    CourseVideo,
    Project,
    ProjectStatus,
    Role,
    StoredFile,
    Transaction,
    User,
)
from app.services import ledger
from app.services.actor import Actor, UserId, require_role
from app.services.courses import detach_course_backlinks

logger = get_logger(__name__)


def get_user_or_404(db: Session, user_id: UserId) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


def list_users(db: Session, actor: Actor, role: Optional[str] = None) -> List[User]:
    require_role(actor, Role.ADMIN, message="Admin access required")
    query = db.query(User)
    if role and role != "all":
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def update_user_role(db: Session, actor: Actor, user_id: UserId, role: str) -> User:
    actor = require_role(actor, Role.ADMIN, message="Admin access required")
    try:
        role = Role(role).value
    except ValueError:
        raise InvalidArgument("role must be one of: admin, company, intern")
    user = get_user_or_404(db, user_id)
    with unit_of_work(db):
        user.role = role
    logger.info("Admin %s set role of user %s to %s", actor.id, user_id, role)
    return user


def set_user_ban(db: Session, actor: Actor, user_id: UserId, is_banned: bool) -> User:
    actor = require_role(actor, Role.ADMIN, message="Admin access required")
    if user_id == actor.id and is_banned:
        raise InvalidArgument("Admins cannot ban themselves")
    user = get_user_or_404(db, user_id)
    with unit_of_work(db):
        user.is_banned = bool(is_banned)
    logger.warning("Admin %s %s user %s", actor.id, "banned" if is_banned else "unbanned", user_id)
    return user


def adjust_user_points(db: Session, actor: Actor, user_id: UserId, amount: int, reason: Optional[str] = None) -> User:
    actor = require_role(actor, Role.ADMIN, message="Admin access required")
    user = get_user_or_404(db, user_id)
    with unit_of_work(db):
        ledger.admin_adjust(db, user_id, amount, (reason or "").strip())
    db.refresh(user)
    logger.info("Admin %s adjusted user %s by %s (balance now %s)", actor.id, user_id, amount, user.points_balance)
    return user


def get_stats(db: Session, actor: Actor) -> dict:
    require_role(actor, Role.ADMIN, message="Admin access required")
    projects = db.query(Project.status).all()
    statuses = [s for (s,) in projects]
    return {
        "total_users": db.query(User).count(),
        "total_companies": db.query(User).filter(User.role == Role.COMPANY.value).count(),
        "total_interns": db.query(User).filter(User.role == Role.INTERN.value).count(),
        "total_projects": len(statuses),
        "active_projects": sum(
            1 for s in statuses if s in (ProjectStatus.OPEN.value, ProjectStatus.IN_PROGRESS.value)
        ),
        "completed_projects": statuses.count(ProjectStatus.COMPLETED.value),
        "total_transactions": db.query(Transaction).count(),
        "total_courses": db.query(Course).count(),
        "pending_courses": db.query(Course).filter(Course.is_approved.is_(False)).count(),
    }


# Delete User (cascade)
# ----------------------------
def delete_user(db: Session, actor: Actor, user_id: UserId) -> List[str]:
    """Remove a user and everything that belongs to them.

    Children are removed before parents and every step commits on its own.
    This is not all-or-nothing: when a step fails, the steps before it stay
    committed and CascadeDeleteError names the failed step together with the
    finished ones, so the delete can simply be run again to finish cleanup
    (every step is a no-op once its rows are gone).
    """
    actor = require_role(actor, Role.ADMIN, message="Admin access required")
    if user_id == actor.id:
        raise InvalidState("Admins cannot delete their own account")
    get_user_or_404(db, user_id)

    project_ids = [pid for (pid,) in db.query(Project.id).filter(Project.company_id == user_id).all()]
    course_ids = [cid for (cid,) in db.query(Course.id).filter(Course.uploaded_by == user_id).all()]

    def delete_project_applications():
        if project_ids:
            db.query(Application).filter(Application.project_id.in_(project_ids)).delete(synchronize_session=False)

    def delete_projects():
        if project_ids:
            # ledger rows keep their amounts, only the back-link goes
            db.query(Transaction).filter(Transaction.project_id.in_(project_ids)).update(
                {Transaction.project_id: None}, synchronize_session=False
            )
            db.query(Project).filter(Project.id.in_(project_ids)).delete(synchronize_session=False)

    def release_assigned_projects():
        db.query(Project).filter(
            Project.assigned_intern_id == user_id,
            Project.status == ProjectStatus.IN_PROGRESS.value,
        ).update(
            {
                Project.assigned_intern_id: None,
                Project.status: ProjectStatus.OPEN.value,
                Project.completion_requested: False,
                Project.completion_note: None,
            },
            synchronize_session=False,
        )
        db.query(Project).filter(Project.assigned_intern_id == user_id).update(
            {Project.assigned_intern_id: None}, synchronize_session=False
        )

    def delete_applications():
        db.query(Application).filter(Application.intern_id == user_id).delete(synchronize_session=False)

    def delete_transactions():
        db.query(Transaction).filter(Transaction.user_id == user_id).delete(synchronize_session=False)

    def delete_purchases():
        db.query(CoursePurchase).filter(CoursePurchase.user_id == user_id).delete(synchronize_session=False)

    def delete_courses():
        if course_ids:
            detach_course_backlinks(db, course_ids)
            db.query(CourseVideo).filter(CourseVideo.course_id.in_(course_ids)).delete(synchronize_session=False)
            db.query(CoursePurchase).filter(CoursePurchase.course_id.in_(course_ids)).delete(synchronize_session=False)
            db.query(CourseProgress).filter(CourseProgress.course_id.in_(course_ids)).delete(synchronize_session=False)
            db.query(Course).filter(Course.id.in_(course_ids)).delete(synchronize_session=False)

    def delete_videos():
        db.query(CourseVideo).filter(CourseVideo.added_by == user_id).delete(synchronize_session=False)

    def delete_progress():
        db.query(CourseProgress).filter(CourseProgress.user_id == user_id).delete(synchronize_session=False)

    def release_files():
        db.query(StoredFile).filter(StoredFile.uploaded_by == user_id).update(
            {StoredFile.uploaded_by: None}, synchronize_session=False
        )

    def delete_account():
        db.query(User).filter(User.id == user_id).delete(synchronize_session=False)

    steps = [
        ("project_applications", delete_project_applications),
        ("projects", delete_projects),
        ("assigned_projects", release_assigned_projects),
        ("applications", delete_applications),
        ("transactions", delete_transactions),
        ("course_purchases", delete_purchases),
        ("courses", delete_courses),
        ("course_videos", delete_videos),
        ("course_progress", delete_progress),
        ("stored_files", release_files),
        ("user", delete_account),
    ]

    completed: List[str] = []
    for name, run in steps:
        try:
            with unit_of_work(db):
                run()
        except Exception as e:
            logger.error("Deleting user %s failed at step %s: %s", user_id, name, e)
            raise CascadeDeleteError(user_id, name, list(completed), e) from e
        completed.append(name)

    db.expire_all()
    logger.warning("Admin %s deleted user %s", actor.id, user_id)
    return completed
