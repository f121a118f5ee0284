from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.core.security import create_access_token, hash_password, verify_password
from app.database.connection import get_db
from app.database.models import User
from app.schemas import LoginRequest, SignupRequest, TokenResponse

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


# ---------------------
# Signup
# ---------------------
@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    email_norm = (payload.email or "").strip().lower()
    if not email_norm or "@" not in email_norm:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="A valid email is required.")
    existing = db.query(User).filter(func.lower(User.email) == email_norm).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered.")

    # role stays unset until onboarding (see /profile/role)
    u = User(
        name=(payload.name or "").strip() or None,
        email=email_norm,
        password_hash=hash_password(payload.password.strip()),
        points_balance=0,
        total_points_earned=0,
        total_points_spent=0,
    )
    db.add(u)
    db.commit()
    logger.info("User %s signed up", u.id)
    return TokenResponse(access_token=create_access_token({"sub": str(u.id)}))


# ---------------------
# Login
# ---------------------
@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    email_norm = (payload.email or "").strip().lower()
    user = db.query(User).filter(func.lower(User.email) == email_norm).first()
    if not user or not verify_password((payload.password or "").strip(), user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password.")
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This account is banned.")
    return TokenResponse(access_token=create_access_token({"sub": str(user.id)}))
