"""
profile.py — Onboarding and profile updates for the calling user
"""

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument, InvalidState, NotAuthenticated
from app.core.logging import get_logger
from app.database.connection import unit_of_work
from app.database.models import Role, StoredFile, User
from app.services import storage
from app.services.actor import Actor, FileId, require_active

logger = get_logger(__name__)

SELF_SELECTABLE_ROLES = (Role.COMPANY.value, Role.INTERN.value)

# (filename, content_type, data)
Photo = Tuple[Optional[str], Optional[str], bytes]
def get_me(db: Session, actor: Actor) -> User:
    if actor is None:
        raise NotAuthenticated("Not authenticated")
    user = db.query(User).filter(User.id == actor.id).first()
    if not user:
        raise NotAuthenticated("Not authenticated")
    return user


def set_role(db: Session, actor: Actor, role: str) -> User:
    """Pick company or intern during onboarding. Only allowed while no role is set."""
    actor = require_active(actor)
    if role not in SELF_SELECTABLE_ROLES:
        raise InvalidArgument("role must be 'company' or 'intern'")
    user = get_me(db, actor)
    if user.role:
        raise InvalidState(f"Role already set to {user.role}")

    with unit_of_work(db):
        user.role = role
    logger.info("User %s onboarded as %s", actor.id, role)
    return user


def update_profile(
    db: Session,
    actor: Actor,
    name: Optional[str] = None,
    bio: Optional[str] = None,
    company: Optional[str] = None,
    skills: Optional[List[str]] = None,
    location: Optional[str] = None,
    website: Optional[str] = None,
    image: Optional[str] = None,
    photo: Optional[Photo] = None,
) -> User:
    """Update the caller's own profile.

    An uploaded `photo` is kept in file storage and replaces `image` with the
    stored file id; `image_url` turns that id back into a signed URL.
    """
    actor = require_active(actor)
    user = get_me(db, actor)
    stored = None
    if photo is not None:
        filename, content_type, data = photo
        stored = storage.store_file(db, actor.id, filename, content_type, data)
        image = stored.id

    try:
        with unit_of_work(db):
            if name is not None and name.strip():
                user.name = name.strip()
            if bio is not None:
                user.bio = bio.strip() or None
            if company is not None:
                user.company = company.strip() or None
            if skills is not None:
                user.skills = [s.strip() for s in skills if s and s.strip()]
            if location is not None:
                user.location = location.strip() or None
            if website is not None:
                user.website = website.strip() or None
            if image is not None:
                user.image = image.strip() or None
    except Exception:
        # nothing references the new photo, drop it
        if stored is not None:
            storage.delete_file(db, stored)
        raise
    return user


def image_url(db: Session, image: Optional[str]) -> Optional[str]:
    if image and db.query(StoredFile.id).filter(StoredFile.id == image).first():
        return storage.get_signed_url(db, FileId(image))
    return image
