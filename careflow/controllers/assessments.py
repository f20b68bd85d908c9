"""Assessment controller: read, edit, assign and delete generated assessments."""

from __future__ import annotations

import logging
from typing import Any, Dict
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
    get_assessment_for_user,
    get_case_or_404,
)
from careflow.models import (
    Assessment,
    AssessmentStatus,
    Recording,
    Template,
    Transcript,
    User,
    UserRole,
)
from careflow.models.base import utcnow
from careflow.pipelines.recording import pipeline_jobs
from careflow.pipelines.recording.assessment import DEFAULT_SECTIONS, expected_section_keys
from careflow.services.storage import remove_recordings
from careflow.views import (
    AssessmentAssignRequest,
    AssessmentResponse,
    AssessmentUpdateRequest,
    ErrorResponse,
    TranscriptResponse,
)

router = APIRouter(tags=["assessments"])

logger = logging.getLogger(__name__)


def to_response(assessment: Assessment) -> AssessmentResponse:
    """Serialize an assessment, hiding partial sections until processing is done."""

    response = AssessmentResponse.model_validate(assessment)
    if assessment.processing_status == AssessmentStatus.PROCESSING:
        response.dynamic_sections = {}
        response.action_items = []
    return response


async def _allowed_section_keys(session: AsyncSession, assessment: Assessment) -> set[str]:
    result = await session.execute(
        select(Template.sections).where(Template.name == assessment.template)
    )
    sections = result.scalar_one_or_none()
    keys = set(expected_section_keys(sections or DEFAULT_SECTIONS))
    keys.update((assessment.dynamic_sections or {}).keys())
    return keys


def _validate_section_updates(updates: Dict[str, Any], allowed: set[str]) -> Dict[str, str]:
    invalid = sorted(key for key in updates if key not in allowed)
    if invalid:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown section(s) for this template: {', '.join(invalid)}",
        )
    not_text = sorted(key for key, value in updates.items() if not isinstance(value, str))
    if not_text:
        raise HTTPException(
            status_code=422,
            detail=f"Section values must be strings: {', '.join(not_text)}",
        )
    return dict(updates)


@router.get("/assessments/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(
    assessment_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> AssessmentResponse:
    assessment = await get_assessment_for_user(session, assessment_id, current_user)
    return to_response(assessment)


@router.get("/cases/{case_id}/assessments", response_model=list[AssessmentResponse])
async def list_case_assessments(
    case_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[AssessmentResponse]:
    case = await get_case_or_404(session, case_id)
    ensure_case_access(case, current_user)
    result = await session.execute(
        select(Assessment)
        .where(Assessment.case_id == case.id)
        .order_by(Assessment.created_at.desc())
    )
    return [to_response(assessment) for assessment in result.scalars().all()]


@router.get("/assessments/{assessment_id}/transcripts", response_model=list[TranscriptResponse])
async def list_assessment_transcripts(
    assessment_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[TranscriptResponse]:
    assessment = await get_assessment_for_user(session, assessment_id, current_user)
    result = await session.execute(
        select(Transcript)
        .where(Transcript.assessment_id == assessment.id)
        .order_by(Transcript.created_at)
    )
    return [TranscriptResponse.model_validate(item) for item in result.scalars().all()]


@router.patch(
    "/assessments/{assessment_id}",
    response_model=AssessmentResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_assessment(
    assessment_id: UUID,
    payload: AssessmentUpdateRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> AssessmentResponse:
    """Edit system fields and merge section edits into the existing sections.

    Sections that are not mentioned keep their current text.
    """

    assessment = await get_assessment_for_user(session, assessment_id, current_user)
    if assessment.processing_status == AssessmentStatus.PROCESSING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Assessment is still being generated",
        )

    if payload.title is not None:
        assessment.title = payload.title.strip()
    if payload.template is not None:
        assessment.template = payload.template.strip()
    if payload.action_items is not None:
        assessment.action_items = [item.strip() for item in payload.action_items if item.strip()]

    section_updates = payload.section_updates()
    if section_updates:
        allowed = await _allowed_section_keys(session, assessment)
        cleaned = _validate_section_updates(section_updates, allowed)
        merged: Dict[str, Any] = dict(assessment.dynamic_sections or {})
        merged.update(cleaned)
        assessment.dynamic_sections = merged

    await session.commit()
    await session.refresh(assessment)
    logger.info(
        "Assessment %s updated by user %s (sections=%s)",
        assessment.id,
        current_user.id,
        sorted(section_updates),
    )
    return to_response(assessment)


@router.delete("/assessments/{assessment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assessment(
    assessment_id: UUID,
    session: SessionDep,
    _admin: AdminUserDep,
) -> Response:
    """Delete an assessment with its transcripts, recordings and stored audio."""

    assessment = await session.get(Assessment, assessment_id)
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")

    result = await session.execute(
        select(Recording.id, Recording.file_path).where(Recording.assessment_id == assessment.id)
    )
    recordings = result.all()
    if any(pipeline_jobs.is_running(recording_id) for recording_id, _ in recordings):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Assessment is still being generated",
        )

    try:
        await session.execute(delete(Transcript).where(Transcript.assessment_id == assessment.id))
        await session.execute(delete(Recording).where(Recording.assessment_id == assessment.id))
        await session.execute(delete(Assessment).where(Assessment.id == assessment.id))
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Could not delete assessment %s", assessment_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not delete assessment",
        ) from exc

    await remove_recordings(file_path for _, file_path in recordings if file_path)

    logger.info("Assessment %s deleted with %s recording(s)", assessment_id, len(recordings))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/me/assessments", response_model=list[AssessmentResponse])
async def list_my_assessments(
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[AssessmentResponse]:
    result = await session.execute(
        select(Assessment)
        .where(Assessment.assigned_to == current_user.id)
        .order_by(Assessment.assigned_at.desc(), Assessment.created_at.desc())
    )
    return [to_response(assessment) for assessment in result.scalars().all()]


@router.post(
    "/assessments/{assessment_id}/assign",
    response_model=AssessmentResponse,
    responses={400: {"model": ErrorResponse}},
)
async def assign_assessment(
    assessment_id: UUID,
    payload: AssessmentAssignRequest,
    session: SessionDep,
    admin: AdminUserDep,
) -> AssessmentResponse:
    """Assign or reassign an assessment to an active team member."""

    assessment = await session.get(Assessment, assessment_id)
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")

    assignee = await session.get(User, payload.assigned_to)
    if assignee is None or assignee.role != UserRole.TEAM_MEMBER or not assignee.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid assignee - must be an active team member",
        )

    previous = assessment.assigned_to
    assessment.assigned_to = assignee.id
    assessment.assigned_by = admin.id
    assessment.assigned_at = utcnow()
    await session.commit()
    await session.refresh(assessment)
    logger.info(
        "Assessment %s assigned to user %s by %s (previously %s)",
        assessment.id,
        assignee.id,
        admin.id,
        previous,
    )
    return to_response(assessment)


@router.patch("/assessments/{assessment_id}/unassign", response_model=AssessmentResponse)
async def unassign_assessment(
    assessment_id: UUID,
    session: SessionDep,
    admin: AdminUserDep,
) -> AssessmentResponse:
    assessment = await session.get(Assessment, assessment_id)
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")

    assessment.assigned_to = None
    assessment.assigned_by = admin.id
    assessment.assigned_at = None
    await session.commit()
    await session.refresh(assessment)
    logger.info("Assessment %s unassigned by %s", assessment.id, admin.id)
    return to_response(assessment)


@router.get("/cases/{case_id}/transcripts", response_model=list[TranscriptResponse])
async def list_case_transcripts(
    case_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[TranscriptResponse]:
    case = await get_case_or_404(session, case_id)
    ensure_case_access(case, current_user)
    result = await session.execute(
        select(Transcript)
        .where(Transcript.case_id == case.id)
        .order_by(Transcript.created_at.desc())
    )
    return [TranscriptResponse.model_validate(item) for item in result.scalars().all()]


@router.get("/transcripts/{transcript_id}", response_model=TranscriptResponse)
async def get_transcript(
    transcript_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> TranscriptResponse:
    transcript = await session.get(Transcript, transcript_id)
    if transcript is None or transcript.assessment_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transcript not found")
    await get_assessment_for_user(session, transcript.assessment_id, current_user)
    return TranscriptResponse.model_validate(transcript)
