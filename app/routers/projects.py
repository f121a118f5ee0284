from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.security import get_current_actor
from app.database.connection import get_db
from app.database.models import Project
from app.schemas import CompletionRequest, ProjectCreate, ProjectOut, ProjectUpdate, RejectCompletionRequest
from app.services import projects
from app.services.actor import Actor, ProjectId, UserId

router = APIRouter(prefix="/projects", tags=["projects"])


def _out(db: Session, p: Project) -> ProjectOut:
    out = ProjectOut.model_validate(p)
    out.company_name = projects.company_name(db, UserId(p.company_id))
    return out


@router.get("", response_model=List[ProjectOut])
def list_projects(
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return [_out(db, p) for p in projects.list_projects(db, status_filter, category, search)]


@router.get("/mine", response_model=List[ProjectOut])
def my_projects(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [_out(db, p) for p in projects.list_by_company(db, actor.id)]


@router.get("/assigned", response_model=List[ProjectOut])
def assigned_projects(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [_out(db, p) for p in projects.list_assigned(db, actor)]


@router.get("/company/{company_id}", response_model=List[ProjectOut])
def company_projects(company_id: int, db: Session = Depends(get_db)):
    return [_out(db, p) for p in projects.list_by_company(db, UserId(company_id))]


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(project_id: int, db: Session = Depends(get_db)):
    return _out(db, projects.get_project_or_404(db, ProjectId(project_id)))


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create_project(body: ProjectCreate, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    p = projects.create_project(db, actor, **body.model_dump())
    return _out(db, p)


@router.patch("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: int,
    body: ProjectUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    p = projects.update_project(db, actor, ProjectId(project_id), **body.model_dump(exclude_none=True))
    return _out(db, p)


@router.delete("/{project_id}")
def delete_project(project_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    projects.delete_project(db, actor, ProjectId(project_id))
    return {"success": True}


# Completion lifecycle
# ----------------------------
@router.post("/{project_id}/request-completion", response_model=ProjectOut)
def request_completion(
    project_id: int,
    body: CompletionRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _out(db, projects.request_completion(db, actor, ProjectId(project_id), body.note))


@router.post("/{project_id}/approve-completion", response_model=ProjectOut)
def approve_completion(project_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return _out(db, projects.approve_completion(db, actor, ProjectId(project_id)))


@router.post("/{project_id}/reject-completion", response_model=ProjectOut)
def reject_completion(
    project_id: int,
    body: RejectCompletionRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _out(db, projects.reject_completion(db, actor, ProjectId(project_id), body.action, body.reason))
