"""Security utilities for authentication and authorization."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.common.config import get_settings
from app.common.db import get_db
from app.auth.models import Profile, UserRole
from app.auth.schemas import Identity, TokenPayload

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
settings = get_settings()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed hash in the database
        return False


def get_password_hash(password: str) -> str:
    """Hash a password for storage."""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def create_access_token(subject: str, expires_minutes: Optional[int] = None, extra: Optional[Dict[str, Any]] = None) -> str:
    """
    Create a short-lived JWT access token.

    Args:
        subject: Profile ID as string
        expires_minutes: Optional custom expiration (defaults to settings)
        extra: Optional extra claims (e.g., role)

    Returns:
        Encoded JWT token string
    """
    expire_delta = timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    expire = datetime.now(timezone.utc) + expire_delta
    to_encode: Dict[str, Any] = {
        "sub": subject,
        "exp": expire,
        "type": "access"
    }
    if extra:
        to_encode.update(extra)
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_refresh_token(subject: str, expires_days: Optional[int] = None) -> str:
    """Create a long-lived JWT refresh token."""
    expire_delta = timedelta(days=expires_days or settings.refresh_token_expire_days)
    expire = datetime.now(timezone.utc) + expire_delta
    to_encode: Dict[str, Any] = {
        "sub": subject,
        "exp": expire,
        "type": "refresh",
        "jti": uuid.uuid4().hex,  # logins within the same second still get distinct tokens
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def _decode(token: str, expected_type: str, error_detail: str) -> TokenPayload:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail,
            headers={"WWW-Authenticate": "Bearer"}
        ) from exc
    if payload.get("type") != expected_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )
    return TokenPayload(sub=payload.get("sub"), exp=payload.get("exp"), role=payload.get("role"))


def decode_token(token: str) -> TokenPayload:
    """
    Decode and validate an access token.

    Raises:
        HTTPException: If token is invalid, expired or not an access token
    """
    return _decode(token, "access", "Invalid credentials")


def decode_refresh_token(token: str) -> TokenPayload:
    """Decode and validate refresh token structure."""
    return _decode(token, "refresh", "Invalid refresh token")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Profile:
    """
    Get the current profile from the access token.

    The token itself is stateless; the profile is re-read so deactivated
    accounts lose access before their token expires.

    Raises:
        HTTPException: If profile not found or inactive
    """
    payload = decode_token(token)
    try:
        profile_id = int(payload.sub)
    except (TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"}
        ) from exc

    profile = db.get(Profile, profile_id)
    if not profile or not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return profile


def get_current_identity(current_user: Profile = Depends(get_current_user)) -> Identity:
    """Resolve the caller into an authenticated/admin capability pair."""
    return Identity(
        profile_id=current_user.id,
        is_authenticated=True,
        has_admin_capability=current_user.role == UserRole.ADMIN,
    )


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Dependency to ensure the caller holds the admin capability."""
    if not identity.has_admin_capability:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required."
        )
    return identity
