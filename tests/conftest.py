import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import hash_password
from app.database.connection import Base, make_engine
from app.database.models import User
from app.services.actor import Actor


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="intern", balance=0, banned=False, name=None):
        counter["n"] += 1
        user = User(
            name=name or f"{role}-{counter['n']}",
            email=f"{role}{counter['n']}@example.com",
            password_hash=hash_password("secret123"),
            role=role,
            is_banned=banned,
            points_balance=balance,
            total_points_earned=balance,
            total_points_spent=0,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def as_actor():
    def _actor(user):
        return Actor.from_user(user)

    return _actor


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def company(make_user):
    return make_user("company", balance=1000)


@pytest.fixture
def intern(make_user):
    return make_user("intern")


@pytest.fixture
def file_sessions(tmp_path):
    """Session factory over a SQLite file, for tests that need real connections per thread."""
    eng = make_engine(f"sqlite:///{(tmp_path / 'race.db').as_posix()}")
    Base.metadata.create_all(bind=eng)
    yield sessionmaker(autocommit=False, autoflush=False, bind=eng)
    eng.dispose()
