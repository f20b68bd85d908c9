"""Case controller: open, list, edit, assign and delete client cases."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from careflow.controllers.dependencies import (
    AdminUserDep,
    CurrentUserDep,
    SessionDep,
    ensure_case_access,
    get_case_or_404,
)
from careflow.models import Assessment, Case, Recording, Transcript
from careflow.models.base import utcnow
from careflow.models.user import User as UserModel
from careflow.pipelines.recording import pipeline_jobs
from careflow.services.storage import remove_recordings
from careflow.views import (
    CaseAssignRequest,
    CaseCreateRequest,
    CaseResponse,
    CaseUpdateRequest,
    ErrorResponse,
)

router = APIRouter(prefix="/cases", tags=["cases"])

logger = logging.getLogger(__name__)


async def _get_assignee_or_404(session: AsyncSession, user_id: int | None) -> UserModel | None:
    if user_id is None:
        return None
    user = await session.get(UserModel, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Assignee not found"
        )
    return user


@router.post("/", response_model=CaseResponse, status_code=status.HTTP_201_CREATED)
async def create_case(
    payload: CaseCreateRequest,
    session: SessionDep,
    admin: AdminUserDep,
) -> CaseResponse:
    client_name = payload.client_name.strip()
    if not client_name:
        raise HTTPException(
            status_code=422,
            detail="Client name cannot be empty",
        )

    assignee = await _get_assignee_or_404(session, payload.assigned_to)
    case = Case(
        client_name=client_name,
        address=payload.address,
        case_details=payload.case_details,
        created_by=admin.id,
        assigned_to=assignee.id if assignee else None,
        assigned_at=utcnow() if assignee else None,
    )
    session.add(case)
    await session.commit()
    await session.refresh(case)
    return CaseResponse.model_validate(case)


@router.get("/", response_model=list[CaseResponse])
async def list_cases(
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[CaseResponse]:
    query = select(Case).order_by(Case.created_at.desc())
    if not current_user.is_admin:
        query = query.where(Case.assigned_to == current_user.id)
    result = await session.execute(query)
    return [CaseResponse.model_validate(case) for case in result.scalars().all()]


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(
    case_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> CaseResponse:
    case = await get_case_or_404(session, case_id)
    ensure_case_access(case, current_user)
    return CaseResponse.model_validate(case)


@router.post("/{case_id}/assign", response_model=CaseResponse)
async def assign_case(
    case_id: UUID,
    payload: CaseAssignRequest,
    session: SessionDep,
    _admin: AdminUserDep,
) -> CaseResponse:
    case = await get_case_or_404(session, case_id)
    assignee = await _get_assignee_or_404(session, payload.assigned_to)

    case.assigned_to = assignee.id if assignee else None
    case.assigned_at = utcnow() if assignee else None
    await session.commit()
    await session.refresh(case)
    return CaseResponse.model_validate(case)


@router.patch(
    "/{case_id}",
    response_model=CaseResponse,
    responses={422: {"model": ErrorResponse}},
)
async def update_case(
    case_id: UUID,
    payload: CaseUpdateRequest,
    session: SessionDep,
    _admin: AdminUserDep,
) -> CaseResponse:
    case = await get_case_or_404(session, case_id)
    updates = payload.model_dump(exclude_unset=True)

    if "client_name" in updates:
        client_name = (updates.pop("client_name") or "").strip()
        if not client_name:
            raise HTTPException(status_code=422, detail="Client name cannot be empty")
        case.client_name = client_name
    if "status" in updates:
        new_status = updates.pop("status")
        if new_status is None:
            raise HTTPException(status_code=422, detail="Case status cannot be empty")
        case.status = new_status
    for field, value in updates.items():
        setattr(case, field, value)

    await session.commit()
    await session.refresh(case)
    return CaseResponse.model_validate(case)


@router.patch(
    "/{case_id}/unassign",
    response_model=CaseResponse,
    responses={400: {"model": ErrorResponse}},
)
async def unassign_case(
    case_id: UUID,
    session: SessionDep,
    _admin: AdminUserDep,
) -> CaseResponse:
    case = await get_case_or_404(session, case_id)
    if case.assigned_to is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Case is not assigned")

    case.assigned_to = None
    case.assigned_at = None
    await session.commit()
    await session.refresh(case)
    return CaseResponse.model_validate(case)


@router.delete(
    "/{case_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={409: {"model": ErrorResponse}},
)
async def delete_case(
    case_id: UUID,
    session: SessionDep,
    _admin: AdminUserDep,
) -> Response:
    """Delete a case with its assessments, transcripts, recordings and stored audio."""

    case = await get_case_or_404(session, case_id)
    assessment_ids = select(Assessment.id).where(Assessment.case_id == case.id)

    result = await session.execute(
        select(Recording.id, Recording.file_path).where(Recording.assessment_id.in_(assessment_ids))
    )
    recordings = result.all()
    if any(pipeline_jobs.is_running(recording_id) for recording_id, _ in recordings):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A recording for this case is still being processed",
        )

    try:
        await session.execute(delete(Transcript).where(Transcript.case_id == case.id))
        await session.execute(
            delete(Recording)
            .where(Recording.assessment_id.in_(assessment_ids))
            .execution_options(synchronize_session=False)
        )
        await session.execute(delete(Assessment).where(Assessment.case_id == case.id))
        await session.execute(delete(Case).where(Case.id == case.id))
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Could not delete case %s", case_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not delete case",
        ) from exc

    await remove_recordings(file_path for _, file_path in recordings if file_path)
    logger.info("Case %s deleted with %s recording(s)", case_id, len(recordings))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
