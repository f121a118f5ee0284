import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, ForeignKey, TIMESTAMP, Boolean, Text, JSON, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from .connection import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    COMPANY = "company"
    INTERN = "intern"


class ProjectStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TransactionType(str, enum.Enum):
    PURCHASE = "purchase"
    EARN = "earn"
    SPEND = "spend"


# Users
# ---------------------
class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="ck_users_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=True)  # admin / company / intern, unset until onboarding
    is_banned = Column(Boolean, default=False, nullable=False)

    # Profile
    image = Column(String)
    bio = Column(Text)
    company = Column(String)
    skills = Column(JSON, default=list)
    location = Column(String)
    website = Column(String)

    # Points
    points_balance = Column(Integer, default=0, nullable=False)
    total_points_earned = Column(Integer, default=0, nullable=False)
    total_points_spent = Column(Integer, default=0, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    projects = relationship("Project", back_populates="company", foreign_keys="Project.company_id")
    applications = relationship("Application", back_populates="intern", foreign_keys="Application.intern_id")
    transactions = relationship("Transaction", back_populates="user")

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"


# Projects
# ---------------------
class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    company_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    points_reward = Column(Integer, nullable=False)
    status = Column(String, default=ProjectStatus.OPEN.value, nullable=False, index=True)
    category = Column(String, default="")
    difficulty = Column(String, default="")
    duration = Column(String, default="")
    requirements = Column(JSON, default=list)
    assigned_intern_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    completion_requested = Column(Boolean, default=False, nullable=False)
    completion_note = Column(Text)
    completion_feedback = Column(Text)  # reason given when a completion request was sent back
    completed_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    company = relationship("User", back_populates="projects", foreign_keys=[company_id])
    assigned_intern = relationship("User", foreign_keys=[assigned_intern_id])
    applications = relationship("Application", back_populates="project")


# Applications
# ---------------------
class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("project_id", "intern_id", name="uq_applications_project_intern"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    intern_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, default=ApplicationStatus.PENDING.value, nullable=False)
    message = Column(Text, nullable=False)
    applicant_email = Column(String)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    intern = relationship("User", back_populates="applications", foreign_keys=[intern_id])
    project = relationship("Project", back_populates="applications")


# Transactions (append-only ledger)
# ---------------------
class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # purchase / earn / spend
    amount = Column(Integer, nullable=False)
    description = Column(String, nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    package_id = Column(Integer, ForeignKey("point_packages.id"), nullable=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    user = relationship("User", back_populates="transactions")


# Point packages
# ---------------------
class PointPackage(Base):
    __tablename__ = "point_packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    points = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False)
    description = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)


# Courses
# ---------------------
class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)
    video_url = Column(String)
    video_file_id = Column(String, ForeignKey("stored_files.id"), nullable=True)
    thumbnail_url = Column(String)
    duration = Column(String)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_approved = Column(Boolean, default=False, nullable=False)
    price = Column(Integer, default=0, nullable=False)  # points, 0 = not for sale
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    uploader = relationship("User", foreign_keys=[uploaded_by])
    videos = relationship("CourseVideo", back_populates="course", order_by="CourseVideo.order")


class CoursePurchase(Base):
    __tablename__ = "course_purchases"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_purchases_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    price_paid = Column(Integer, nullable=False)
    purchased_at = Column(TIMESTAMP, default=datetime.utcnow)


class CourseVideo(Base):
    __tablename__ = "course_videos"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    added_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    video_url = Column(String)  # remote link, or
    file_id = Column(String, ForeignKey("stored_files.id"), nullable=True)  # uploaded file
    order = Column(Integer, default=0, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    course = relationship("Course", back_populates="videos")


class CourseProgress(Base):
    __tablename__ = "course_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_progress_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    progress = Column(Integer, default=0, nullable=False)  # percent watched
    completed = Column(Boolean, default=False, nullable=False)
    last_watched_at = Column(TIMESTAMP)


# Stored files
# ---------------------
class StoredFile(Base):
    __tablename__ = "stored_files"

    id = Column(String, primary_key=True)  # uuid4 hex
    path = Column(String, nullable=False)
    filename = Column(String)
    content_type = Column(String)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
