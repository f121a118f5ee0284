from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.security import get_current_actor
from app.database.connection import get_db
from app.schemas import AdjustPointsRequest, BanRequest, DeleteUserResponse, RoleUpdate, StatsOut, UserOut
from app.services import admin
from app.services.actor import Actor, UserId

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=List[UserOut])
def list_users(
    role: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return admin.list_users(db, actor, role)


@router.get("/stats", response_model=StatsOut)
def stats(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return admin.get_stats(db, actor)


# Update User
# ----------------------------
@router.post("/users/{user_id}/role", response_model=UserOut)
def update_role(user_id: int, body: RoleUpdate, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return admin.update_user_role(db, actor, UserId(user_id), body.role)


@router.post("/users/{user_id}/ban", response_model=UserOut)
def set_ban(user_id: int, body: BanRequest, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return admin.set_user_ban(db, actor, UserId(user_id), body.is_banned)


@router.post("/users/{user_id}/points", response_model=UserOut)
def adjust_points(
    user_id: int,
    body: AdjustPointsRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return admin.adjust_user_points(db, actor, UserId(user_id), body.amount, body.reason)


# Delete User
# ----------------------------
@router.delete("/users/{user_id}", response_model=DeleteUserResponse)
def delete_user(user_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    steps = admin.delete_user(db, actor, UserId(user_id))
    return DeleteUserResponse(user_id=user_id, completed_steps=steps)
