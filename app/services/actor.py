"""
actor.py — Typed identifiers and the explicit caller identity

Every service operation receives the calling `Actor` as its first argument
and checks its capability at the top with `require_active` / `require_role`.
"""

from dataclasses import dataclass
from typing import NewType, Optional

from app.core.errors import NotAuthenticated, NotAuthorized
from app.database.models import Role, User

UserId = NewType("UserId", int)
ProjectId = NewType("ProjectId", int)
ApplicationId = NewType("ApplicationId", int)
CourseId = NewType("CourseId", int)
PackageId = NewType("PackageId", int)
FileId = NewType("FileId", str)


@dataclass(frozen=True)
class Actor:
    id: UserId
    role: Optional[Role]
    is_banned: bool = False

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            id=UserId(user.id),
            role=Role(user.role) if user.role else None,
            is_banned=bool(user.is_banned),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def require_active(actor: Optional[Actor]) -> Actor:
    if actor is None:
        raise NotAuthenticated("Not authenticated")
    if actor.is_banned:
        raise NotAuthorized("Account is banned")
    return actor


def require_role(actor: Optional[Actor], *roles: Role, message: str = "") -> Actor:
    actor = require_active(actor)
    if actor.role not in roles:
        allowed = " or ".join(r.value for r in roles)
        raise NotAuthorized(message or f"Only {allowed} accounts can do this")
    return actor
