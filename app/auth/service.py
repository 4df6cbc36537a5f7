"""Authentication service with JWT token management."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.auth.models import Profile, RefreshToken, UserRole
from app.auth import schemas as auth_schema
from app.common.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from app.common.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class AuthService:
    """Service for authentication and profile management."""

    def __init__(self, session: Session):
        self.session = session

    def login(self, data: auth_schema.UserLogin) -> auth_schema.LoginResponse:
        """
        Authenticate a profile and return tokens.

        Every login revokes the profile's earlier refresh tokens, so only the
        newest session can be refreshed.

        Raises:
            HTTPException: If credentials are invalid
        """
        profile = self.session.execute(
            select(Profile).where(Profile.email == data.email.strip().lower())
        ).scalar_one_or_none()

        if not profile or not verify_password(data.password, profile.hashed_password) or not profile.is_active:
            logger.info("Failed login for %s", data.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )

        self._revoke_refresh_tokens(profile.id)

        access_token = create_access_token(
            str(profile.id),
            extra={"role": profile.role.value}
        )

        now = datetime.now(timezone.utc)
        refresh_token_str = create_refresh_token(str(profile.id))
        self.session.add(
            RefreshToken(
                profile_id=profile.id,
                token=refresh_token_str,
                expires_at=now + timedelta(days=settings.refresh_token_expire_days),
                created_at=now,
            )
        )
        self.session.commit()

        return auth_schema.LoginResponse(
            access_token=access_token,
            refresh_token=refresh_token_str,
            expires_in=settings.access_token_expire_minutes * 60,
            role=profile.role.value,
            is_admin=profile.role == UserRole.ADMIN,
        )

    def refresh_access_token(self, refresh_token_str: str) -> auth_schema.Token:
        """
        Create a new access token using a refresh token.

        Raises:
            HTTPException: If refresh token is invalid, revoked, or expired
        """
        decode_refresh_token(refresh_token_str)

        refresh_token = self.session.execute(
            select(RefreshToken).where(
                RefreshToken.token == refresh_token_str,
                RefreshToken.revoked == False,  # noqa: E712
                RefreshToken.expires_at > datetime.now(timezone.utc),
            )
        ).scalar_one_or_none()

        if not refresh_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired refresh token"
            )

        profile = self.session.get(Profile, refresh_token.profile_id)
        if not profile or not profile.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive"
            )

        access_token = create_access_token(
            str(profile.id),
            extra={"role": profile.role.value}
        )

        return auth_schema.Token(
            access_token=access_token,
            refresh_token=refresh_token_str,  # Keep same refresh token
            expires_in=settings.access_token_expire_minutes * 60,
        )

    def logout_all_sessions(self, profile_id: int) -> None:
        """Revoke all refresh tokens for a profile."""
        self._revoke_refresh_tokens(profile_id)
        self.session.commit()

    def _revoke_refresh_tokens(self, profile_id: int) -> None:
        self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.profile_id == profile_id)
            .values(revoked=True)
        )

    def create_profile(self, payload: auth_schema.ProfileCreate) -> Profile:
        """
        Create a profile, or update role and password when the email exists.

        Used by the admin bootstrap script.
        """
        email = payload.email.strip().lower()
        profile: Optional[Profile] = self.session.execute(
            select(Profile).where(Profile.email == email)
        ).scalar_one_or_none()

        if profile is None:
            profile = Profile(email=email)
            self.session.add(profile)

        profile.full_name = payload.full_name or profile.full_name
        profile.role = payload.role
        profile.hashed_password = get_password_hash(payload.password)
        profile.is_active = True
        self.session.commit()
        return profile
