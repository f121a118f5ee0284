"""
courses.py — Course catalog, purchases, videos and progress

Admin-authored courses are approved on creation; intern submissions wait for
an admin. A purchase debits the buyer (the points leave circulation) and
records ownership once per (user, course); ownership is what unlocks the
course videos.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AlreadyOwned, InvalidArgument, InvalidState, NotAuthorized, NotFound
from app.core.logging import get_logger
from app.database.connection import unit_of_work
from app.database.models import Course, CoursePurchase, CourseProgress, CourseVideo, Role, StoredFile, Transaction
from app.services import ledger, storage
from app.services.actor import Actor, CourseId, FileId, UserId, require_active, require_role

logger = get_logger(__name__)


def get_course_or_404(db: Session, course_id: CourseId) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise NotFound(f"Course {course_id} not found")
    return course


def _check_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise InvalidArgument(f"{field} is required")
    return value.strip()


def _check_price(price) -> int:
    if isinstance(price, bool) or not isinstance(price, int) or price < 0:
        raise InvalidArgument("price must be a whole number of points, zero or more")
    return price


def _new_course(db: Session, actor: Actor, approved: bool, title, description, category, video_url,
                thumbnail_url, duration, price, video_file_id) -> Course:
    if video_file_id and not db.query(StoredFile.id).filter(StoredFile.id == video_file_id).first():
        raise NotFound(f"File {video_file_id} not found")
    return Course(
        title=_check_text(title, "title"),
        description=_check_text(description, "description"),
        category=_check_text(category, "category"),
        video_url=(video_url or "").strip() or None,
        video_file_id=video_file_id or None,
        thumbnail_url=(thumbnail_url or "").strip() or None,
        duration=(duration or "").strip() or None,
        uploaded_by=actor.id,
        is_approved=approved,
        price=_check_price(price),
    )


def owns_course(db: Session, user_id: UserId, course_id: CourseId) -> bool:
    return (
        db.query(CoursePurchase.id)
        .filter(CoursePurchase.user_id == user_id, CoursePurchase.course_id == course_id)
        .first()
        is not None
    )


# Catalog
# ----------------------------
def create_course(db: Session, actor: Actor, title: str, description: str, category: str,
                  video_url: Optional[str] = None, thumbnail_url: Optional[str] = None,
                  duration: Optional[str] = None, price: int = 0,
                  video_file_id: Optional[FileId] = None) -> Course:
    actor = require_role(actor, Role.ADMIN, message="Only admins can create courses")
    course = _new_course(
        db, actor, True, title, description, category, video_url, thumbnail_url, duration, price, video_file_id
    )
    with unit_of_work(db):
        db.add(course)
        db.flush()
    logger.info("Admin %s created course %s", actor.id, course.id)
    return course


def submit_course(db: Session, actor: Actor, title: str, description: str, category: str,
                  video_url: Optional[str] = None, thumbnail_url: Optional[str] = None,
                  duration: Optional[str] = None, price: int = 0,
                  video_file_id: Optional[FileId] = None) -> Course:
    actor = require_role(actor, Role.INTERN, message="Only interns can submit courses")
    course = _new_course(
        db, actor, False, title, description, category, video_url, thumbnail_url, duration, price, video_file_id
    )
    with unit_of_work(db):
        db.add(course)
        db.flush()
    logger.info("Intern %s submitted course %s for review", actor.id, course.id)
    return course


def _visible_to(actor: Actor, course: Course) -> bool:
    return actor.is_admin or course.is_approved or course.uploaded_by == actor.id


def list_courses(db: Session, actor: Actor, category: Optional[str] = None) -> List[Course]:
    actor = require_role(actor, Role.INTERN, Role.ADMIN, message="Only interns and admins can view courses")
    query = db.query(Course)
    if category and category != "all":
        query = query.filter(Course.category == category)
    courses = query.order_by(Course.created_at.desc(), Course.id.desc()).all()
    return [c for c in courses if _visible_to(actor, c)]


def get_course(db: Session, actor: Actor, course_id: CourseId) -> Course:
    actor = require_role(actor, Role.INTERN, Role.ADMIN, message="Only interns and admins can view courses")
    course = get_course_or_404(db, course_id)
    if not _visible_to(actor, course):
        raise NotFound(f"Course {course_id} not found")
    return course


def get_progress(db: Session, user_id: UserId, course_id: CourseId) -> Optional[CourseProgress]:
    return (
        db.query(CourseProgress)
        .filter(CourseProgress.user_id == user_id, CourseProgress.course_id == course_id)
        .first()
    )


def list_pending(db: Session, actor: Actor) -> List[Course]:
    require_role(actor, Role.ADMIN, message="Only admins can view pending courses")
    return db.query(Course).filter(Course.is_approved.is_(False)).order_by(Course.id.asc()).all()


def approve(db: Session, actor: Actor, course_id: CourseId) -> Course:
    actor = require_role(actor, Role.ADMIN, message="Only admins can approve courses")
    course = get_course_or_404(db, course_id)
    if not course.is_approved:
        with unit_of_work(db):
            course.is_approved = True
        logger.info("Admin %s approved course %s", actor.id, course_id)
    return course


def set_price(db: Session, actor: Actor, course_id: CourseId, price: int) -> Course:
    actor = require_role(actor, Role.ADMIN, message="Only admins can price courses")
    course = get_course_or_404(db, course_id)
    with unit_of_work(db):
        course.price = _check_price(price)
    logger.info("Admin %s set course %s price to %s", actor.id, course_id, price)
    return course


def remove(db: Session, actor: Actor, course_id: CourseId) -> None:
    """Delete a course and its videos, ownership and progress rows.

    Spend transactions that paid for the course stay in the ledger with the
    course back-link cleared.
    """
    actor = require_role(actor, Role.ADMIN, message="Only admins can remove courses")
    course = get_course_or_404(db, course_id)
    with unit_of_work(db):
        detach_course_backlinks(db, [course_id])
        db.query(CourseVideo).filter(CourseVideo.course_id == course_id).delete(synchronize_session=False)
        db.query(CoursePurchase).filter(CoursePurchase.course_id == course_id).delete(synchronize_session=False)
        db.query(CourseProgress).filter(CourseProgress.course_id == course_id).delete(synchronize_session=False)
        db.delete(course)
    logger.info("Admin %s removed course %s", actor.id, course_id)


def detach_course_backlinks(db: Session, course_ids: List[CourseId]) -> None:
    db.query(Transaction).filter(Transaction.course_id.in_(course_ids)).update(
        {Transaction.course_id: None}, synchronize_session=False
    )


# Ownership
# ----------------------------
def purchase_course(db: Session, actor: Actor, course_id: CourseId) -> CoursePurchase:
    """Buy a course with points.

    Not idempotent: a retry after success fails with AlreadyOwned rather than
    charging twice. The unique (user, course) constraint backs the check up
    when two purchases race; the losing one rolls back its debit.
    """
    actor = require_role(actor, Role.INTERN, message="Only interns can purchase courses")
    course = get_course_or_404(db, course_id)
    if not course.is_approved:
        raise InvalidState("Course is not approved yet")
    price = course.price or 0
    if price <= 0:
        raise InvalidArgument("Course is not for sale")
    if owns_course(db, actor.id, course_id):
        raise AlreadyOwned("You already own this course")

    purchase = CoursePurchase(course_id=course_id, user_id=actor.id, price_paid=price)
    try:
        with unit_of_work(db):
            ledger.transfer(db, actor.id, None, price, f"Purchased course: {course.title}", course_id=course_id)
            db.add(purchase)
            db.flush()
    except IntegrityError:
        raise AlreadyOwned("You already own this course")
    logger.info("Intern %s bought course %s for %s points", actor.id, course_id, price)
    return purchase


def list_owned(db: Session, actor: Actor) -> List[Course]:
    actor = require_active(actor)
    return (
        db.query(Course)
        .join(CoursePurchase, CoursePurchase.course_id == Course.id)
        .filter(CoursePurchase.user_id == actor.id)
        .order_by(CoursePurchase.purchased_at.desc())
        .all()
    )


# Videos
# ----------------------------
def _require_contributor(actor: Actor, course: Course) -> None:
    if actor.is_admin:
        return
    if course.uploaded_by != actor.id:
        raise NotAuthorized("Only admins or the course uploader can add videos")


def list_videos(db: Session, actor: Actor, course_id: CourseId) -> List[dict]:
    actor = require_active(actor)
    get_course_or_404(db, course_id)
    if not actor.is_admin and not owns_course(db, actor.id, course_id):
        raise NotAuthorized("Purchase this course to watch its videos")

    videos = (
        db.query(CourseVideo)
        .filter(CourseVideo.course_id == course_id)
        .order_by(CourseVideo.order.asc(), CourseVideo.id.asc())
        .all()
    )
    return [
        {
            "id": v.id,
            "course_id": v.course_id,
            "title": v.title,
            "description": v.description,
            "order": v.order,
            "video_url": v.video_url,
            "file_id": v.file_id,
            "file_url": storage.get_signed_url(db, FileId(v.file_id)) if v.file_id else None,
        }
        for v in videos
    ]


def add_video(db: Session, actor: Actor, course_id: CourseId, title: str,
              description: Optional[str] = None, video_url: Optional[str] = None,
              file_id: Optional[FileId] = None) -> CourseVideo:
    actor = require_active(actor)
    course = get_course_or_404(db, course_id)
    _require_contributor(actor, course)
    title = _check_text(title, "title")
    video_url = (video_url or "").strip() or None
    if bool(video_url) == bool(file_id):
        raise InvalidArgument("Provide either a video URL or an uploaded file")
    if file_id and not db.query(StoredFile.id).filter(StoredFile.id == file_id).first():
        raise NotFound(f"File {file_id} not found")

    last = (
        db.query(CourseVideo.order)
        .filter(CourseVideo.course_id == course_id)
        .order_by(CourseVideo.order.desc())
        .first()
    )
    video = CourseVideo(
        course_id=course_id,
        added_by=actor.id,
        title=title,
        description=(description or "").strip() or None,
        video_url=video_url,
        file_id=file_id,
        order=(last[0] + 1) if last else 0,
    )
    with unit_of_work(db):
        db.add(video)
        db.flush()
    logger.info("User %s added video %s to course %s", actor.id, video.id, course_id)
    return video


def generate_video_upload_url(db: Session, actor: Actor, course_id: CourseId) -> str:
    actor = require_active(actor)
    course = get_course_or_404(db, course_id)
    _require_contributor(actor, course)
    return storage.generate_upload_url(actor)


# Progress
# ----------------------------
def update_progress(db: Session, actor: Actor, course_id: CourseId, progress: int, completed: bool) -> CourseProgress:
    """Record watch progress. Ownership is not required."""
    actor = require_active(actor)
    get_course_or_404(db, course_id)
    if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
        raise InvalidArgument("progress must be between 0 and 100")

    try:
        return _write_progress(db, actor.id, course_id, progress, completed)
    except IntegrityError:
        # a concurrent first write created the row; update it instead
        return _write_progress(db, actor.id, course_id, progress, completed)


def _write_progress(db: Session, user_id: UserId, course_id: CourseId, progress: int, completed: bool) -> CourseProgress:
    with unit_of_work(db):
        row = get_progress(db, user_id, course_id)
        if row is None:
            row = CourseProgress(course_id=course_id, user_id=user_id)
            db.add(row)
        row.progress = progress
        row.completed = bool(completed)
        row.last_watched_at = datetime.utcnow()
        db.flush()
    return row
