"""
storage.py — Local file storage with signed URLs

Stands in for a hosted object store. Files live under `settings.UPLOAD_DIR`
with uuid4 names and are tracked in the `stored_files` table. Upload and
download URLs carry a short-lived JWT (python-jose) so they can be handed
to a browser without exposing the access token.
"""

import datetime
import os
from typing import Optional
from uuid import uuid4

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidArgument, NotAuthorized, NotFound
from app.core.logging import get_logger
from app.database.connection import unit_of_work
from app.database.models import StoredFile
from app.services.actor import Actor, FileId, require_active

logger = get_logger(__name__)

API_PREFIX = "/api/v1/storage"


def _sign(claims: dict) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.datetime.utcnow() + datetime.timedelta(minutes=settings.SIGNED_URL_EXPIRE_MINUTES)
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _verify(token: str, purpose: str) -> dict:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise NotAuthorized("Invalid or expired storage URL")
    if claims.get("purpose") != purpose:
        raise NotAuthorized("Invalid or expired storage URL")
    return claims


def generate_upload_url(actor: Actor) -> str:
    actor = require_active(actor)
    token = _sign({"purpose": "upload", "sub": str(actor.id)})
    return f"{API_PREFIX}/upload?token={token}"


def save_upload(
    db: Session,
    token: str,
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
) -> StoredFile:
    claims = _verify(token, "upload")
    return store_file(db, int(claims["sub"]), filename, content_type, data)


def store_file(
    db: Session,
    uploader_id: int,
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
) -> StoredFile:
    if not data:
        raise InvalidArgument("Uploaded file is empty")

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    file_id = uuid4().hex
    ext = os.path.splitext(filename or "")[1]
    path = os.path.join(settings.UPLOAD_DIR, f"{file_id}{ext}")
    with open(path, "wb") as f:
        f.write(data)

    stored = StoredFile(
        id=file_id,
        path=path,
        filename=filename,
        content_type=content_type,
        uploaded_by=uploader_id,
    )
    try:
        with unit_of_work(db):
            db.add(stored)
    except Exception:
        os.remove(path)
        raise
    logger.info("Stored upload %s (%s bytes) for user %s", file_id, len(data), uploader_id)
    return stored


def get_file_or_404(db: Session, file_id: FileId) -> StoredFile:
    stored = db.query(StoredFile).filter(StoredFile.id == file_id).first()
    if not stored:
        raise NotFound(f"File {file_id} not found")
    return stored


def get_signed_url(db: Session, file_id: FileId) -> str:
    get_file_or_404(db, file_id)
    token = _sign({"purpose": "download", "file": file_id})
    return f"{API_PREFIX}/files/{file_id}?token={token}"


def resolve_download(db: Session, file_id: FileId, token: str) -> StoredFile:
    claims = _verify(token, "download")
    if claims.get("file") != file_id:
        raise NotAuthorized("Invalid or expired storage URL")
    stored = get_file_or_404(db, file_id)
    if not os.path.exists(stored.path):
        raise NotFound(f"File {file_id} is missing from storage")
    return stored


def delete_file(db: Session, stored: StoredFile) -> None:
    file_id, path = stored.id, stored.path
    with unit_of_work(db):
        db.query(StoredFile).filter(StoredFile.id == file_id).delete(synchronize_session=False)
    if os.path.exists(path):
        os.remove(path)
    logger.info("Removed stored file %s", file_id)
