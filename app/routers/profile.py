from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.core.security import get_current_actor
from app.database.connection import get_db
from app.database.models import User
from app.schemas import SetRoleRequest, UserOut
from app.services import profile
from app.services.actor import Actor

router = APIRouter(prefix="/profile", tags=["profile"])


def _out(db: Session, user: User) -> UserOut:
    out = UserOut.model_validate(user)
    out.image = profile.image_url(db, user.image)
    return out


@router.get("/me", response_model=UserOut)
def me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return _out(db, profile.get_me(db, actor))


@router.post("/role", response_model=UserOut)
def set_role(body: SetRoleRequest, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return _out(db, profile.set_role(db, actor, body.role))


# Update Profile
# ----------------------------
@router.post("/update", response_model=UserOut)
def update_profile(
    name: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    company: Optional[str] = Form(None),
    skills: Optional[str] = Form(None),  # comma separated
    location: Optional[str] = Form(None),
    website: Optional[str] = Form(None),
    image: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    user = profile.update_profile(
        db,
        actor,
        name=name,
        bio=bio,
        company=company,
        skills=skills.split(",") if skills is not None else None,
        location=location,
        website=website,
        image=image,
        photo=(photo.filename, photo.content_type, photo.file.read()) if photo and photo.filename else None,
    )
    return _out(db, user)
