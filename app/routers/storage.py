from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.core.security import get_current_actor
from app.database.connection import get_db
from app.schemas import StoredFileOut, UploadUrlResponse
from app.services import storage
from app.services.actor import Actor, FileId

router = APIRouter(prefix="/storage", tags=["storage"])


@router.post("/upload-url", response_model=UploadUrlResponse)
def upload_url(actor: Actor = Depends(get_current_actor)):
    return UploadUrlResponse(upload_url=storage.generate_upload_url(actor))


@router.post("/upload", response_model=StoredFileOut)
def upload(
    token: str = Query(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    stored = storage.save_upload(db, token, file.filename, file.content_type, file.file.read())
    return StoredFileOut(file_id=stored.id, url=storage.get_signed_url(db, FileId(stored.id)))


@router.get("/files/{file_id}")
def download(file_id: str, token: str = Query(...), db: Session = Depends(get_db)):
    stored = storage.resolve_download(db, FileId(file_id), token)
    return FileResponse(stored.path, media_type=stored.content_type, filename=stored.filename)
