"""
projects.py — Project posting and the completion lifecycle

    open --accept--> in_progress --request--> in_progress (completion_requested)
         <--reject--                 --approve--> completed (reward paid)
                                     --redo---> in_progress (flag cleared)

Transitions are conditional UPDATEs on the project row (matched on the
required prior state and checked by rowcount), so two concurrent approvals
cannot both pay out.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument, InvalidState, NotAuthorized, NotFound
from app.core.logging import get_logger
from app.database.connection import unit_of_work
from app.database.models import Application, ApplicationStatus, Project, ProjectStatus, Role, User
from app.services import ledger
from app.services.actor import Actor, ProjectId, UserId, require_active, require_role

logger = get_logger(__name__)

REJECT_ACTIONS = ("redo", "reject")

_EDITABLE_FIELDS = ("title", "description", "points_reward", "category", "difficulty", "duration", "requirements")


def get_project_or_404(db: Session, project_id: ProjectId) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFound(f"Project {project_id} not found")
    return project


def _require_owner(actor: Actor, project: Project) -> None:
    if project.company_id != actor.id and not actor.is_admin:
        raise NotAuthorized("Only the owning company or an admin can manage this project")


def _check_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise InvalidArgument(f"{field} is required")
    return value.strip()


def _check_reward(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument("points_reward must be a positive whole number")
    return value


def _transition(db: Session, project_id: ProjectId, required: dict, values: dict) -> bool:
    """Apply `values` only if the project still matches `required`."""
    query = db.query(Project).filter(Project.id == project_id)
    for column, expected in required.items():
        query = query.filter(getattr(Project, column) == expected)
    return bool(query.update(values, synchronize_session=False))


# Queries
# ----------------------------
def list_projects(
    db: Session,
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Project]:
    query = db.query(Project)
    if status and status != "all":
        query = query.filter(Project.status == status)
    if category and category != "all":
        query = query.filter(Project.category == category)
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(or_(Project.title.ilike(like), Project.description.ilike(like)))
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def list_by_company(db: Session, company_id: UserId) -> List[Project]:
    return (
        db.query(Project)
        .filter(Project.company_id == company_id)
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )


def list_assigned(db: Session, actor: Actor) -> List[Project]:
    actor = require_role(actor, Role.INTERN)
    return db.query(Project).filter(Project.assigned_intern_id == actor.id).all()


# Posting
# ----------------------------
def create_project(
    db: Session,
    actor: Actor,
    title: str,
    description: str,
    points_reward: int,
    category: str = "",
    difficulty: str = "",
    duration: str = "",
    requirements: Optional[List[str]] = None,
) -> Project:
    actor = require_role(actor, Role.COMPANY, message="Only companies can create projects")
    project = Project(
        title=_check_text(title, "title"),
        description=_check_text(description, "description"),
        points_reward=_check_reward(points_reward),
        company_id=actor.id,
        status=ProjectStatus.OPEN.value,
        category=(category or "").strip(),
        difficulty=(difficulty or "").strip(),
        duration=(duration or "").strip(),
        requirements=[r.strip() for r in (requirements or []) if r and r.strip()],
    )
    with unit_of_work(db):
        db.add(project)
        db.flush()
    logger.info("Company %s created project %s (%s points)", actor.id, project.id, project.points_reward)
    return project


def update_project(db: Session, actor: Actor, project_id: ProjectId, **changes) -> Project:
    """Edit project details.

    The reward is fixed once work has started. The only status changes
    accepted here are cancelling an open project and reopening a cancelled
    one; everything else goes through the lifecycle operations.
    """
    actor = require_active(actor)
    project = get_project_or_404(db, project_id)
    _require_owner(actor, project)

    values = {}
    for field in _EDITABLE_FIELDS:
        if changes.get(field) is None:
            continue
        value = changes[field]
        if field in ("title", "description"):
            value = _check_text(value, field)
        elif field == "points_reward":
            value = _check_reward(value)
            if project.status != ProjectStatus.OPEN.value:
                raise InvalidState("points_reward can only change while the project is open")
        elif field == "requirements":
            value = [r.strip() for r in value if r and r.strip()]
        values[field] = value

    new_status = changes.get("status")
    required = {}
    if new_status is not None and new_status != project.status:
        allowed = {
            (ProjectStatus.OPEN.value, ProjectStatus.CANCELLED.value),
            (ProjectStatus.CANCELLED.value, ProjectStatus.OPEN.value),
        }
        if (project.status, new_status) not in allowed:
            raise InvalidState(
                f"Cannot change status from {project.status} to {new_status}; "
                "only open projects can be cancelled and cancelled projects reopened"
            )
        values["status"] = new_status
        required["status"] = project.status

    if not values:
        return project

    with unit_of_work(db):
        if not _transition(db, project_id, required, values):
            raise InvalidState("Project changed concurrently; reload and try again")
    db.refresh(project)
    logger.info("Project %s updated by %s: %s", project_id, actor.id, sorted(values))
    return project


def delete_project(db: Session, actor: Actor, project_id: ProjectId) -> None:
    actor = require_active(actor)
    project = get_project_or_404(db, project_id)
    _require_owner(actor, project)
    if project.status == ProjectStatus.COMPLETED.value:
        raise InvalidState("Completed projects are part of the ledger history and cannot be deleted")

    with unit_of_work(db):
        db.query(Application).filter(Application.project_id == project_id).delete(synchronize_session=False)
        db.delete(project)
    logger.info("Project %s deleted by %s", project_id, actor.id)


# Completion lifecycle
# ----------------------------
def request_completion(db: Session, actor: Actor, project_id: ProjectId, note: Optional[str] = None) -> Project:
    actor = require_active(actor)
    project = get_project_or_404(db, project_id)
    if project.assigned_intern_id != actor.id:
        raise NotAuthorized("Only the assigned intern can request completion")
    if project.status != ProjectStatus.IN_PROGRESS.value:
        raise InvalidState(f"Project must be in_progress to request completion (is {project.status})")

    with unit_of_work(db):
        done = _transition(
            db,
            project_id,
            {"status": ProjectStatus.IN_PROGRESS.value, "assigned_intern_id": actor.id},
            {"completion_requested": True, "completion_note": (note or "").strip() or None},
        )
        if not done:
            raise InvalidState("Project must be in_progress to request completion")
    db.refresh(project)
    logger.info("Intern %s requested completion of project %s", actor.id, project_id)
    return project


def approve_completion(db: Session, actor: Actor, project_id: ProjectId) -> Project:
    """Pay the reward from the owning company to the assigned intern and close the project.

    The status change and the transfer share one database transaction, so
    either both happen or neither does.
    """
    actor = require_active(actor)
    project = get_project_or_404(db, project_id)
    _require_owner(actor, project)
    if project.status != ProjectStatus.IN_PROGRESS.value or not project.completion_requested:
        raise InvalidState("Project must be in_progress with a pending completion request")
    if not project.assigned_intern_id:
        raise InvalidState("No intern assigned to this project")

    company_id = UserId(project.company_id)
    intern_id = UserId(project.assigned_intern_id)
    reward = project.points_reward

    with unit_of_work(db):
        done = _transition(
            db,
            project_id,
            {"status": ProjectStatus.IN_PROGRESS.value, "completion_requested": True, "assigned_intern_id": intern_id},
            {
                "status": ProjectStatus.COMPLETED.value,
                "completed_at": datetime.utcnow(),
                "completion_requested": False,
                "completion_note": None,
            },
        )
        if not done:
            raise InvalidState("Project must be in_progress with a pending completion request")
        ledger.transfer(
            db,
            company_id,
            intern_id,
            reward,
            f"Paid for project: {project.title}",
            credit_description=f"Earned from project: {project.title}",
            project_id=ProjectId(project.id),
        )
    db.refresh(project)
    logger.info("Project %s completed: %s points from %s to %s", project_id, reward, company_id, intern_id)
    return project


def reject_completion(
    db: Session,
    actor: Actor,
    project_id: ProjectId,
    action: str,
    reason: Optional[str] = None,
) -> Project:
    """Send a completion request back.

    `redo` keeps the intern assigned so they can resubmit; `reject` unassigns
    them, reopens the project and marks their application rejected.
    """
    if action not in REJECT_ACTIONS:
        raise InvalidArgument("action must be 'redo' or 'reject'")
    actor = require_active(actor)
    project = get_project_or_404(db, project_id)
    _require_owner(actor, project)
    if project.status != ProjectStatus.IN_PROGRESS.value or not project.completion_requested:
        raise InvalidState("Project must be in_progress with a pending completion request")

    intern_id = project.assigned_intern_id
    feedback = (reason or "").strip() or None
    required = {"status": ProjectStatus.IN_PROGRESS.value, "completion_requested": True}

    with unit_of_work(db):
        if action == "redo":
            values = {"completion_requested": False, "completion_feedback": feedback}
        else:
            values = {
                "status": ProjectStatus.OPEN.value,
                "assigned_intern_id": None,
                "completion_requested": False,
                "completion_note": None,
                "completion_feedback": feedback,
            }
        if not _transition(db, project_id, required, values):
            raise InvalidState("Project must be in_progress with a pending completion request")
        if action == "reject" and intern_id:
            db.query(Application).filter(
                Application.project_id == project_id,
                Application.intern_id == intern_id,
                Application.status == ApplicationStatus.ACCEPTED.value,
            ).update({Application.status: ApplicationStatus.REJECTED.value}, synchronize_session=False)
    db.refresh(project)
    logger.info("Completion of project %s sent back (%s) by %s", project_id, action, actor.id)
    return project


def company_name(db: Session, company_id: UserId) -> str:
    company = db.query(User).filter(User.id == company_id).first()
    return company.display_name if company else "Unknown"
