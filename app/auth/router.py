"""Authentication router with JWT token management."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.common.db import get_db
from app.auth import schemas as auth_schema
from app.common.schemas import Message
from app.common.security import get_current_user
from app.auth.service import AuthService
from app.auth.models import Profile

router = APIRouter()


@router.post("/login", response_model=auth_schema.LoginResponse)
def login(payload: auth_schema.UserLogin, db: Session = Depends(get_db)):
    """
    Login with email and password.

    Returns access token, refresh token and the caller's role.
    Invalidates all previous sessions (single session per profile).
    """
    return AuthService(db).login(payload)


@router.post("/refresh", response_model=auth_schema.Token)
def refresh_token(
    payload: auth_schema.RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Exchange a refresh token for a new access token."""
    return AuthService(db).refresh_access_token(payload.refresh_token)


@router.post("/logout", response_model=Message)
def logout(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Logout from all sessions (revoke all refresh tokens).

    Access tokens expire on their own.
    """
    AuthService(db).logout_all_sessions(current_user.id)
    return Message(message="Logged out from all devices")


@router.get("/me", response_model=auth_schema.ProfileRead)
def me(current_user: Profile = Depends(get_current_user)):
    """Get the current authenticated profile."""
    return auth_schema.ProfileRead.model_validate(current_user)
