"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careflow.database import get_session
from careflow.models import Assessment, Case
from careflow.models.user import User as UserModel
from careflow.utils import AuthenticationError, decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: SessionDep,
) -> UserModel:
    """Resolve and validate the user referenced by the bearer token."""

    try:
        payload = decode_access_token(token)
        user_id = payload.user_id
    except (AuthenticationError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None

    result = await session.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user


CurrentUserDep = Annotated[UserModel, Depends(get_current_user)]


async def require_admin(current_user: CurrentUserDep) -> UserModel:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


AdminUserDep = Annotated[UserModel, Depends(require_admin)]


def ensure_case_access(case: Case, user: UserModel) -> None:
    """Admins see every case; team members only the cases assigned to them."""

    if user.is_admin or case.assigned_to == user.id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You do not have access to this case",
    )


async def get_case_or_404(session: AsyncSession, case_id: UUID) -> Case:
    case = await session.get(Case, case_id)
    if case is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Case not found")
    return case


async def get_assessment_for_user(
    session: AsyncSession,
    assessment_id: UUID,
    user: UserModel,
) -> Assessment:
    """Load an assessment the user may see, or raise 404/403."""

    assessment = await session.get(Assessment, assessment_id)
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")
    if assessment.assigned_to is not None and assessment.assigned_to == user.id:
        return assessment
    case = await get_case_or_404(session, assessment.case_id)
    ensure_case_access(case, user)
    return assessment


__all__ = [
    "get_current_user",
    "require_admin",
    "ensure_case_access",
    "get_case_or_404",
    "get_assessment_for_user",
    "oauth2_scheme",
    "SessionDep",
    "CurrentUserDep",
    "AdminUserDep",
]
