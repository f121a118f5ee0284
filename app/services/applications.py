"""
applications.py — Intern applications to projects

One application per (project, intern) pair, enforced by a check plus the
unique constraint on the table. Accepting an application assigns the intern
and moves the project to in_progress in the same transaction.
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateApplication, InvalidArgument, InvalidState, NotAuthorized, NotFound
from app.core.logging import get_logger
from app.database.connection import unit_of_work
from app.database.models import Application, ApplicationStatus, Project, ProjectStatus, Role
from app.services.actor import Actor, ApplicationId, ProjectId, require_active, require_role
from app.services.projects import get_project_or_404

logger = get_logger(__name__)

DECISIONS = (ApplicationStatus.ACCEPTED.value, ApplicationStatus.REJECTED.value)


def get_application_or_404(db: Session, application_id: ApplicationId) -> Application:
    application = db.query(Application).filter(Application.id == application_id).first()
    if not application:
        raise NotFound(f"Application {application_id} not found")
    return application


def apply(
    db: Session,
    actor: Actor,
    project_id: ProjectId,
    message: str,
    applicant_email: Optional[str] = None,
) -> Application:
    actor = require_role(actor, Role.INTERN, message="Only interns can apply to projects")
    if not message or not message.strip():
        raise InvalidArgument("message is required")
    project = get_project_or_404(db, project_id)

    existing = (
        db.query(Application)
        .filter(Application.project_id == project_id, Application.intern_id == actor.id)
        .first()
    )
    if existing:
        raise DuplicateApplication("Already applied to this project")
    if project.status != ProjectStatus.OPEN.value:
        raise InvalidState(f"Project must be open to accept applications (is {project.status})")

    application = Application(
        project_id=project_id,
        intern_id=actor.id,
        status=ApplicationStatus.PENDING.value,
        message=message.strip(),
        applicant_email=(applicant_email or "").strip() or None,
    )
    try:
        with unit_of_work(db):
            db.add(application)
            db.flush()
    except IntegrityError:
        # lost a race with a concurrent apply for the same pair
        raise DuplicateApplication("Already applied to this project")
    logger.info("Intern %s applied to project %s", actor.id, project_id)
    return application


def update_status(db: Session, actor: Actor, application_id: ApplicationId, status: str) -> Application:
    """Accept or reject a pending application.

    Accepting requires the project to still be open and assigns it to the
    applicant. Other pending applications for the project are left as they
    are.
    """
    if status not in DECISIONS:
        raise InvalidArgument("status must be 'accepted' or 'rejected'")
    actor = require_active(actor)
    application = get_application_or_404(db, application_id)
    project = get_project_or_404(db, ProjectId(application.project_id))
    if project.company_id != actor.id and not actor.is_admin:
        raise NotAuthorized("Only the owning company or an admin can review applications")
    if application.status != ApplicationStatus.PENDING.value:
        raise InvalidState(f"Application must be pending (is {application.status})")

    with unit_of_work(db):
        updated = (
            db.query(Application)
            .filter(Application.id == application_id, Application.status == ApplicationStatus.PENDING.value)
            .update({Application.status: status}, synchronize_session=False)
        )
        if not updated:
            raise InvalidState("Application must be pending")
        if status == ApplicationStatus.ACCEPTED.value:
            assigned = (
                db.query(Project)
                .filter(Project.id == project.id, Project.status == ProjectStatus.OPEN.value)
                .update(
                    {
                        Project.assigned_intern_id: application.intern_id,
                        Project.status: ProjectStatus.IN_PROGRESS.value,
                        Project.completion_requested: False,
                        Project.completion_note: None,
                    },
                    synchronize_session=False,
                )
            )
            if not assigned:
                raise InvalidState("Project must be open to accept an application")
    db.refresh(application)
    logger.info("Application %s %s by %s", application_id, status, actor.id)
    return application


def withdraw(db: Session, actor: Actor, application_id: ApplicationId) -> None:
    actor = require_role(actor, Role.INTERN)
    application = get_application_or_404(db, application_id)
    if application.intern_id != actor.id:
        raise NotAuthorized("Only the applicant can withdraw this application")
    if application.status != ApplicationStatus.PENDING.value:
        raise InvalidState(f"Only pending applications can be withdrawn (is {application.status})")

    with unit_of_work(db):
        db.delete(application)
    logger.info("Intern %s withdrew application %s", actor.id, application_id)


def list_by_project(db: Session, actor: Actor, project_id: ProjectId) -> List[Application]:
    actor = require_active(actor)
    project = get_project_or_404(db, project_id)
    if project.company_id != actor.id and not actor.is_admin:
        raise NotAuthorized("Only the owning company or an admin can view applications")
    return (
        db.query(Application)
        .filter(Application.project_id == project_id)
        .order_by(Application.created_at.asc(), Application.id.asc())
        .all()
    )


def list_by_intern(db: Session, actor: Actor) -> List[Application]:
    actor = require_active(actor)
    return (
        db.query(Application)
        .filter(Application.intern_id == actor.id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )
