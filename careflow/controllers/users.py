"""User controller: profile lookup and team-member management for administrators."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from careflow.controllers.dependencies import AdminUserDep, CurrentUserDep, SessionDep
from careflow.models.user import User as UserModel
from careflow.utils import hash_password, verify_password
from careflow.views import (
    ErrorResponse,
    PasswordChangeRequest,
    UserCreateRequest,
    UserProfileUpdateRequest,
    UserResponse,
)

router = APIRouter(prefix="/users", tags=["users"])

logger = logging.getLogger(__name__)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateRequest,
    session: SessionDep,
    _admin: AdminUserDep,
) -> UserResponse:
    conditions = [UserModel.username == payload.username]
    if payload.email:
        conditions.append(UserModel.email == payload.email)
    result = await session.execute(select(UserModel).where(or_(*conditions)))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username or email already registered",
        )

    db_user = UserModel(
        username=payload.username,
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    session.add(db_user)
    await session.commit()
    await session.refresh(db_user)
    return UserResponse.model_validate(db_user)


@router.get("/", response_model=list[UserResponse])
async def list_users(
    session: SessionDep,
    _admin: AdminUserDep,
) -> list[UserResponse]:
    result = await session.execute(select(UserModel).order_by(UserModel.username))
    return [UserResponse.model_validate(user) for user in result.scalars().all()]


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    current_user: CurrentUserDep,
) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch(
    "/me",
    response_model=UserResponse,
    responses={409: {"model": ErrorResponse}},
)
async def update_current_user_profile(
    payload: UserProfileUpdateRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> UserResponse:
    result = await session.execute(
        select(UserModel.id).where(
            UserModel.email == payload.email,
            UserModel.id != current_user.id,
        )
    )
    if result.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

    current_user.first_name = payload.first_name.strip()
    current_user.last_name = payload.last_name.strip()
    current_user.email = payload.email
    await session.commit()
    await session.refresh(current_user)
    return UserResponse.model_validate(current_user)


@router.patch(
    "/me/password",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}},
)
async def change_password(
    payload: PasswordChangeRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> Response:
    if not verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    current_user.password_hash = hash_password(payload.new_password)
    await session.commit()
    logger.info("User %s changed their password", current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _set_active(session: AsyncSession, user_id: int, active: bool) -> UserModel:
    user = await session.get(UserModel, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    user.is_active = active
    await session.commit()
    await session.refresh(user)
    return user


@router.patch(
    "/{user_id}/revoke-access",
    response_model=UserResponse,
    responses={400: {"model": ErrorResponse}},
)
async def revoke_access(
    user_id: int,
    session: SessionDep,
    admin: AdminUserDep,
) -> UserResponse:
    """Deactivate an account; its tokens stop working and it can no longer log in."""

    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot revoke your own access",
        )
    user = await _set_active(session, user_id, False)
    logger.info("Access revoked for user %s by %s", user.id, admin.id)
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/restore-access", response_model=UserResponse)
async def restore_access(
    user_id: int,
    session: SessionDep,
    admin: AdminUserDep,
) -> UserResponse:
    user = await _set_active(session, user_id, True)
    logger.info("Access restored for user %s by %s", user.id, admin.id)
    return UserResponse.model_validate(user)
