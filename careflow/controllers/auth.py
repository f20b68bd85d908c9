"""Authentication controller providing login endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import or_, select

from careflow.config.settings import settings
from careflow.controllers.dependencies import SessionDep
from careflow.models.user import User as UserModel
from careflow.telemetry import increment_login
from careflow.utils import create_access_token, verify_password
from careflow.views import LoginRequest, TokenResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    session: SessionDep,
) -> TokenResponse:
    """Validate credentials and issue a JWT access token."""

    identifier = payload.username.strip()
    result = await session.execute(
        select(UserModel).where(
            or_(UserModel.username == identifier, UserModel.email == identifier)
        )
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    access_token = create_access_token(user)
    expires_in = settings.security.access_token_expires_minutes * 60

    increment_login()

    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
        role=user.role.value,
        name=user.full_name,
    )
