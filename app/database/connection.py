from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from app.core.config import settings


def make_engine(url: str, **kwargs):
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS}
    return create_engine(url, connect_args=connect_args, **kwargs)


engine = make_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """Run the enclosed block as one database transaction.

    Commits when the block finishes, rolls back and re-raises on any error,
    so readers never observe a partially applied operation.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
