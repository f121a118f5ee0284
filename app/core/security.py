"""
security.py — Password hashing, access tokens and current-actor resolution

- Access tokens are HS256 JWTs (python-jose) whose `sub` is the user id.
- `get_current_actor` is the FastAPI dependency that turns the bearer token
  into an `Actor`; routers pass that actor explicitly into every service call.
"""

import datetime
import hashlib
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotAuthenticated
from app.database.connection import get_db
from app.database.models import User
from app.services.actor import Actor

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, password_hash: str) -> bool:
    return hash_password(password) == password_hash


def create_access_token(data: Dict[str, Any]) -> str:
    to_encode = data.copy()
    expire_at = datetime.datetime.utcnow() + datetime.timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    to_encode.update({"exp": expire_at})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def resolve_actor(db: Session, token: Optional[str]) -> Optional[Actor]:
    if not token:
        return None
    payload = decode_token(token)
    if not payload or "sub" not in payload:
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    user = db.query(User).filter(User.id == user_id).first()
    return Actor.from_user(user) if user else None


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Actor:
    actor = resolve_actor(db, credentials.credentials if credentials else None)
    if actor is None:
        raise NotAuthenticated("Not authenticated")
    return actor
