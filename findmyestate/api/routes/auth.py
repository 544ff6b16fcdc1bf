"""Authentication endpoints: register, login, me, forgot/reset password, password update."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from findmyestate.core.auth import get_current_user
from findmyestate.core.config import settings
from findmyestate.core.security import (
    create_access_token,
    create_reset_token,
    decode_reset_token,
    hash_password,
    verify_password,
)
from findmyestate.db.session import get_db
from findmyestate.models.user import User
from findmyestate.models.user_role import AppRole
from findmyestate.notifications.emailer import send_email
from findmyestate.services.role_service import has_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# --- Schemas ---


class RegisterBody(BaseModel):
    email: EmailStr
    password: str
    confirm_password: Optional[str] = None
    name: Optional[str] = None


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordBody(BaseModel):
    email: EmailStr


class ResetPasswordBody(BaseModel):
    token: str
    password: str
    confirm_password: Optional[str] = None


class UpdatePasswordBody(BaseModel):
    new_password: str
    confirm_password: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    is_admin: bool = False


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


def _user_out(user: User, db: Session) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        is_admin=has_role(db, user.id, AppRole.ADMIN),
    )


def _check_new_password(password: str, confirm: Optional[str]) -> None:
    """Same rules for sign-up, reset and update."""
    if confirm is not None and password != confirm:
        raise HTTPException(status_code=422, detail="Passwords do not match")
    if len(password) < settings.min_password_length:
        raise HTTPException(
            status_code=422,
            detail=f"Password must be at least {settings.min_password_length} characters long",
        )


# --- Endpoints ---


@router.post("/register", response_model=LoginResponse, status_code=201)
async def register(body: RegisterBody, db: Session = Depends(get_db)) -> LoginResponse:
    """Create a new user account and sign it in."""
    _check_new_password(body.password, body.confirm_password)
    email = body.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    name = (body.name or email.split("@")[0]).strip()
    user = User(email=email, password_hash=hash_password(body.password), name=name)
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("New user registered: %s (id=%s)", user.email, user.id)
    token = create_access_token(sub=user.email, user_id=user.id, name=user.name)
    return LoginResponse(access_token=token, user=_user_out(user, db))


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginBody, db: Session = Depends(get_db)) -> LoginResponse:
    """Login with email + password, get JWT."""
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account disabled")

    token = create_access_token(sub=user.email, user_id=user.id, name=user.name)
    return LoginResponse(access_token=token, user=_user_out(user, db))


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> UserOut:
    """Return current authenticated user."""
    return _user_out(current_user, db)


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordBody, db: Session = Depends(get_db)) -> dict:
    """Send password reset email. Always returns 200 (no email enumeration)."""
    user = db.query(User).filter(User.email == body.email.lower()).first()

    if user and user.is_active:
        token = create_reset_token(user_id=user.id, email=user.email)
        reset_url = f"{settings.app_url}/auth?mode=reset&token={token}"
        text = (
            f"Hi {user.name},\n\n"
            "We received a request to reset your FindMyEstate password.\n"
            f"Open this link within the next hour to choose a new one:\n\n{reset_url}\n\n"
            "If you did not ask for this, you can ignore this email."
        )
        try:
            send_email(to=user.email, subject="FindMyEstate: reset your password", body=text)
            logger.info("Password reset email sent to %s", user.email)
        except (OSError, ValueError) as e:
            logger.error("Failed to send reset email to %s: %s", user.email, e)

    return {"message": "Password reset link sent to your email. Please check your inbox."}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordBody, db: Session = Depends(get_db)) -> dict:
    """Reset password using a valid reset token."""
    payload = decode_reset_token(body.token)
    if not payload:
        raise HTTPException(status_code=400, detail="Invalid or expired reset link")

    user = db.query(User).filter(User.id == payload.get("user_id"), User.is_active.is_(True)).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset link")

    _check_new_password(body.password, body.confirm_password)
    user.password_hash = hash_password(body.password)
    db.commit()
    logger.info("Password reset for %s", user.email)
    return {"message": "Password reset successfully! You can now login."}


@router.put("/password")
async def update_password(
    body: UpdatePasswordBody,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Set a new password for the signed-in user."""
    _check_new_password(body.new_password, body.confirm_password)
    current_user.password_hash = hash_password(body.new_password)
    db.commit()
    return {"status": "ok", "message": "Password updated"}
