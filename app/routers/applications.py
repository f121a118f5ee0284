from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.security import get_current_actor
from app.database.connection import get_db
from app.database.models import Application
from app.schemas import ApplicationCreate, ApplicationOut, ApplicationStatusUpdate
from app.services import applications
from app.services.actor import Actor, ApplicationId, ProjectId

router = APIRouter(prefix="/applications", tags=["applications"])


def _out(a: Application) -> ApplicationOut:
    out = ApplicationOut.model_validate(a)
    if a.intern:
        out.intern_name = a.intern.display_name
        out.intern_skills = a.intern.skills or []
    if a.project:
        out.project_title = a.project.title
        out.company_name = a.project.company.display_name if a.project.company else "Unknown"
    return out


@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
def apply(body: ApplicationCreate, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    a = applications.apply(db, actor, ProjectId(body.project_id), body.message, body.applicant_email)
    return _out(a)


@router.get("/mine", response_model=List[ApplicationOut])
def my_applications(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [_out(a) for a in applications.list_by_intern(db, actor)]


@router.get("/project/{project_id}", response_model=List[ApplicationOut])
def project_applications(project_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [_out(a) for a in applications.list_by_project(db, actor, ProjectId(project_id))]


@router.post("/{application_id}/status", response_model=ApplicationOut)
def update_status(
    application_id: int,
    body: ApplicationStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _out(applications.update_status(db, actor, ApplicationId(application_id), body.status))


@router.post("/{application_id}/withdraw")
def withdraw(application_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    applications.withdraw(db, actor, ApplicationId(application_id))
    return {"success": True}
