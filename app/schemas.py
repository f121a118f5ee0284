# schemas.py

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


# -------- Auth --------

class SignupRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=6)
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# -------- Users / profile --------

class UserOut(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    role: Optional[str] = None
    is_banned: bool = False
    image: Optional[str] = None
    bio: Optional[str] = None
    company: Optional[str] = None
    skills: Optional[List[str]] = None
    location: Optional[str] = None
    website: Optional[str] = None
    points_balance: int
    total_points_earned: int
    total_points_spent: int

    class Config:
        from_attributes = True


class SetRoleRequest(BaseModel):
    role: Literal["company", "intern"]


# -------- Projects --------

class ProjectCreate(BaseModel):
    title: str
    description: str
    points_reward: int
    category: str = ""
    difficulty: str = ""
    duration: str = ""
    requirements: List[str] = []


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    points_reward: Optional[int] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    duration: Optional[str] = None
    requirements: Optional[List[str]] = None
    status: Optional[Literal["open", "in_progress", "completed", "cancelled"]] = None


class ProjectOut(BaseModel):
    id: int
    title: str
    description: str
    company_id: int
    company_name: Optional[str] = None
    points_reward: int
    status: str
    category: Optional[str] = None
    difficulty: Optional[str] = None
    duration: Optional[str] = None
    requirements: List[str] = []
    assigned_intern_id: Optional[int] = None
    completion_requested: bool = False
    completion_note: Optional[str] = None
    completion_feedback: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CompletionRequest(BaseModel):
    note: Optional[str] = None


class RejectCompletionRequest(BaseModel):
    action: Literal["redo", "reject"]
    reason: Optional[str] = None


# -------- Applications --------

class ApplicationCreate(BaseModel):
    project_id: int
    message: str
    applicant_email: Optional[str] = None


class ApplicationStatusUpdate(BaseModel):
    status: Literal["accepted", "rejected"]


class ApplicationOut(BaseModel):
    id: int
    project_id: int
    intern_id: int
    status: str
    message: str
    applicant_email: Optional[str] = None
    created_at: Optional[datetime] = None
    intern_name: Optional[str] = None
    intern_skills: List[str] = []
    project_title: Optional[str] = None
    company_name: Optional[str] = None

    class Config:
        from_attributes = True


# -------- Points --------

class TransactionOut(BaseModel):
    id: int
    user_id: int
    type: str
    amount: int
    description: str
    project_id: Optional[int] = None
    package_id: Optional[int] = None
    course_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PackageCreate(BaseModel):
    name: str
    points: int
    price: int
    description: str = ""


class PackageOut(BaseModel):
    id: int
    name: str
    points: int
    price: int
    description: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class PackageActiveRequest(BaseModel):
    is_active: bool


class PurchasePointsRequest(BaseModel):
    package_id: int


# -------- Courses --------

class CourseCreate(BaseModel):
    title: str
    description: str
    category: str
    video_url: Optional[str] = None
    video_file_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None
    price: int = 0


class CourseOut(BaseModel):
    id: int
    title: str
    description: str
    category: str
    video_url: Optional[str] = None
    video_file_id: Optional[str] = None
    video_file_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None
    uploaded_by: int
    uploader_name: Optional[str] = None
    is_approved: bool
    price: int
    owned: bool = False
    user_progress: int = 0
    user_completed: bool = False

    class Config:
        from_attributes = True


class CoursePriceRequest(BaseModel):
    price: int


class CoursePurchaseOut(BaseModel):
    id: int
    course_id: int
    user_id: int
    price_paid: int
    purchased_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VideoCreate(BaseModel):
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    file_id: Optional[str] = None


class VideoOut(BaseModel):
    id: int
    course_id: int
    title: str
    description: Optional[str] = None
    order: int
    video_url: Optional[str] = None
    file_id: Optional[str] = None
    file_url: Optional[str] = None

    class Config:
        from_attributes = True


class ProgressUpdate(BaseModel):
    progress: int
    completed: bool = False


class ProgressOut(BaseModel):
    course_id: int
    user_id: int
    progress: int
    completed: bool
    last_watched_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UploadUrlResponse(BaseModel):
    upload_url: str


class StoredFileOut(BaseModel):
    file_id: str
    url: str


# -------- Admin --------

class RoleUpdate(BaseModel):
    role: Literal["admin", "company", "intern"]


class BanRequest(BaseModel):
    is_banned: bool


class AdjustPointsRequest(BaseModel):
    amount: int
    reason: Optional[str] = None


class DeleteUserResponse(BaseModel):
    user_id: int
    completed_steps: List[str]


class StatsOut(BaseModel):
    total_users: int
    total_companies: int
    total_interns: int
    total_projects: int
    active_projects: int
    completed_projects: int
    total_transactions: int
    total_courses: int
    pending_courses: int
