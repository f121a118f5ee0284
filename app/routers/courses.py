from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.security import get_current_actor
from app.database.connection import get_db
from app.database.models import Course, User
from app.schemas import (
    CourseCreate,
    CourseOut,
    CoursePriceRequest,
    CoursePurchaseOut,
    ProgressOut,
    ProgressUpdate,
    UploadUrlResponse,
    VideoCreate,
    VideoOut,
)
from app.services import courses, storage
from app.services.actor import Actor, CourseId, FileId

router = APIRouter(prefix="/courses", tags=["courses"])


def _out(db: Session, actor: Actor, c: Course) -> CourseOut:
    out = CourseOut.model_validate(c)
    uploader = db.query(User).filter(User.id == c.uploaded_by).first()
    out.uploader_name = uploader.display_name if uploader else "Unknown"
    if c.video_file_id:
        out.video_file_url = storage.get_signed_url(db, FileId(c.video_file_id))
    out.owned = courses.owns_course(db, actor.id, CourseId(c.id))
    progress = courses.get_progress(db, actor.id, CourseId(c.id))
    if progress:
        out.user_progress = progress.progress
        out.user_completed = progress.completed
    return out


@router.get("", response_model=List[CourseOut])
def list_courses(
    category: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return [_out(db, actor, c) for c in courses.list_courses(db, actor, category)]


@router.get("/pending", response_model=List[CourseOut])
def list_pending(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [_out(db, actor, c) for c in courses.list_pending(db, actor)]


@router.get("/owned", response_model=List[CourseOut])
def list_owned(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [_out(db, actor, c) for c in courses.list_owned(db, actor)]


@router.get("/{course_id}", response_model=CourseOut)
def get_course(course_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return _out(db, actor, courses.get_course(db, actor, CourseId(course_id)))


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(body: CourseCreate, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return _out(db, actor, courses.create_course(db, actor, **body.model_dump()))


@router.post("/submit", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def submit_course(body: CourseCreate, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return _out(db, actor, courses.submit_course(db, actor, **body.model_dump()))


@router.post("/{course_id}/approve", response_model=CourseOut)
def approve_course(course_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return _out(db, actor, courses.approve(db, actor, CourseId(course_id)))


@router.post("/{course_id}/price", response_model=CourseOut)
def set_price(
    course_id: int,
    body: CoursePriceRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _out(db, actor, courses.set_price(db, actor, CourseId(course_id), body.price))


@router.delete("/{course_id}")
def remove_course(course_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    courses.remove(db, actor, CourseId(course_id))
    return {"success": True}


@router.post("/{course_id}/purchase", response_model=CoursePurchaseOut)
def purchase_course(course_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return courses.purchase_course(db, actor, CourseId(course_id))


# Videos
# ----------------------------
@router.get("/{course_id}/videos", response_model=List[VideoOut])
def list_videos(course_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return courses.list_videos(db, actor, CourseId(course_id))


@router.post("/{course_id}/videos", response_model=VideoOut, status_code=status.HTTP_201_CREATED)
def add_video(
    course_id: int,
    body: VideoCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    file_id = FileId(body.file_id) if body.file_id else None
    return courses.add_video(db, actor, CourseId(course_id), body.title, body.description, body.video_url, file_id)


@router.post("/{course_id}/videos/upload-url", response_model=UploadUrlResponse)
def video_upload_url(course_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return UploadUrlResponse(upload_url=courses.generate_video_upload_url(db, actor, CourseId(course_id)))


@router.post("/{course_id}/progress", response_model=ProgressOut)
def update_progress(
    course_id: int,
    body: ProgressUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return courses.update_progress(db, actor, CourseId(course_id), body.progress, body.completed)
