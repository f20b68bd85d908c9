"""Recording endpoints.

``POST /cases/{case_id}/recordings`` stores the upload, creates the assessment
and recording rows and hands the work to the background pipeline (see
`careflow.pipelines.recording.flow.RecordingPipelineMap` for the stages).
Clients then poll ``GET /recordings/{recording_id}/status``.
"""

from __future__ import annotations

import logging
import mimetypes
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from careflow.config.settings import settings
from careflow.controllers.dependencies import (
    CurrentUserDep,
    SessionDep,
    ensure_case_access,
    get_assessment_for_user,
    get_case_or_404,
)
from careflow.models import Assessment, AssessmentStatus, Recording, RecordingStatus
from careflow.models.base import utcnow
from careflow.models.user import User as UserModel
from careflow.pipelines.recording import RecordingPipelineMap, pipeline_jobs
from careflow.services.storage import (
    StorageError,
    UnsupportedMediaError,
    UploadTooLargeError,
    content_type_for,
    is_allowed_audio,
    normalize_content_type,
    remove_recording,
    resolve_stored_path,
    save_recording,
)
from careflow.views import (
    ErrorResponse,
    RecordingResponse,
    RecordingStatusResponse,
    RecordingUploadResponse,
)

router = APIRouter(tags=["recordings"])

logger = logging.getLogger(__name__)

PIPELINE_STAGES = tuple(RecordingPipelineMap.describe())

_AUDIO_FILE_UPLOAD = File(...)
_TEMPLATE_FORM = Form(None)
_TITLE_FORM = Form(None)


def resolve_content_type(audio_file: UploadFile) -> str:
    """Use the declared content type, or guess it from the file name when missing."""

    content_type = normalize_content_type(audio_file.content_type)
    if (not content_type or content_type == "application/octet-stream") and audio_file.filename:
        guessed_type, _ = mimetypes.guess_type(audio_file.filename)
        content_type = normalize_content_type(guessed_type)

    if not is_allowed_audio(content_type):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only audio files are allowed",
        )
    return content_type


async def read_audio_bytes(audio_file: UploadFile) -> bytes:
    """Load the upload into memory, rejecting empty or oversized payloads."""

    limit = settings.storage.max_upload_bytes
    audio_bytes = await audio_file.read(limit + 1)
    await audio_file.close()

    if not audio_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded audio file is empty",
        )
    if len(audio_bytes) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"Audio file exceeds the {settings.storage.max_upload_mb} MB limit",
        )
    return audio_bytes


async def _get_recording_for_user(
    session: AsyncSession,
    recording_id: UUID,
    user: UserModel,
) -> tuple[Recording, Assessment]:
    recording = await session.get(Recording, recording_id)
    if recording is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recording not found")
    assessment = await get_assessment_for_user(session, recording.assessment_id, user)
    return recording, assessment


def describe_progress(recording_status: RecordingStatus) -> tuple[int, Optional[str]]:
    """Map a recording status onto (step number, stage name) for progress display."""

    if recording_status == RecordingStatus.COMPLETED:
        return len(PIPELINE_STAGES), "Completed"
    if recording_status == RecordingStatus.FAILED:
        return 0, "Failed"
    for stage in PIPELINE_STAGES:
        if stage.status == recording_status:
            return stage.order, stage.name
    return 0, "Queued"


@router.post(
    "/cases/{case_id}/recordings",
    response_model=RecordingUploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
    },
)
async def upload_recording(
    case_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
    audio: UploadFile = _AUDIO_FILE_UPLOAD,
    template: Optional[str] = _TEMPLATE_FORM,
    title: Optional[str] = _TITLE_FORM,
) -> RecordingUploadResponse:
    """Store an audio recording and start building an assessment from it."""

    case = await get_case_or_404(session, case_id)
    ensure_case_access(case, current_user)

    content_type = resolve_content_type(audio)
    audio_bytes = await read_audio_bytes(audio)

    try:
        stored_path = await save_recording(
            audio_bytes,
            content_type=content_type,
            original_name=audio.filename,
        )
    except UnsupportedMediaError as exc:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc)) from exc
    except UploadTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Could not store recording for case %s", case_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    template_name = (template or "").strip() or settings.pipeline.default_template
    assessment_title = (title or "").strip() or f"{template_name} - {case.client_name}"

    try:
        assessment = Assessment(
            case_id=case.id,
            title=assessment_title,
            template=template_name,
            dynamic_sections={},
            action_items=[],
            processing_status=AssessmentStatus.PROCESSING,
            assigned_to=current_user.id,
            assigned_by=current_user.id,
            assigned_at=utcnow(),
        )
        session.add(assessment)
        await session.flush()

        recording = Recording(
            assessment_id=assessment.id,
            file_name=audio.filename or stored_path.name,
            file_path=str(stored_path),
            content_type=content_type,
            processing_status=RecordingStatus.PENDING,
        )
        session.add(recording)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        await remove_recording(stored_path)
        logger.exception("Could not create assessment for uploaded recording")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create assessment",
        ) from exc

    pipeline_jobs.submit(
        assessment_id=assessment.id,
        recording_id=recording.id,
        audio_file_path=stored_path,
        template_name_fallback=template_name,
    )
    logger.info(
        "Recording %s uploaded for case %s by user %s (%s bytes)",
        recording.id,
        case.id,
        current_user.id,
        len(audio_bytes),
    )

    return RecordingUploadResponse(
        recording_id=recording.id,
        assessment_id=assessment.id,
        case_id=case.id,
        status=recording.processing_status,
    )


@router.get("/recordings/{recording_id}", response_model=RecordingResponse)
async def get_recording(
    recording_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> RecordingResponse:
    recording, _ = await _get_recording_for_user(session, recording_id, current_user)
    return RecordingResponse.model_validate(recording)


@router.get("/recordings/{recording_id}/status", response_model=RecordingStatusResponse)
async def get_recording_status(
    recording_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> RecordingStatusResponse:
    recording, assessment = await _get_recording_for_user(session, recording_id, current_user)
    step, stage = describe_progress(recording.processing_status)
    return RecordingStatusResponse(
        recording_id=recording.id,
        status=recording.processing_status,
        stage=stage,
        step=step,
        total_steps=len(PIPELINE_STAGES),
        assessment_id=assessment.id,
        assessment_status=assessment.processing_status,
        job_active=pipeline_jobs.is_running(recording.id),
    )


@router.get("/recordings/{recording_id}/audio")
async def get_recording_audio(
    recording_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> FileResponse:
    """Stream the stored audio (range requests are handled by ``FileResponse``)."""

    recording, _ = await _get_recording_for_user(session, recording_id, current_user)
    try:
        path = resolve_stored_path(recording.file_path)
    except StorageError:
        logger.warning("Blocked or missing audio file for recording %s", recording_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found") from None

    return FileResponse(
        path,
        media_type=recording.content_type or content_type_for(path),
        filename=recording.file_name,
        headers={
            "Cache-Control": "private, max-age=3600",
            "X-Content-Type-Options": "nosniff",
        },
    )


@router.get("/assessments/{assessment_id}/recordings", response_model=list[RecordingResponse])
async def list_assessment_recordings(
    assessment_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[RecordingResponse]:
    assessment = await get_assessment_for_user(session, assessment_id, current_user)
    result = await session.execute(
        select(Recording)
        .where(Recording.assessment_id == assessment.id)
        .order_by(Recording.created_at.desc())
    )
    return [RecordingResponse.model_validate(item) for item in result.scalars().all()]


@router.get("/cases/{case_id}/recordings", response_model=list[RecordingResponse])
async def list_case_recordings(
    case_id: UUID,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[RecordingResponse]:
    case = await get_case_or_404(session, case_id)
    ensure_case_access(case, current_user)
    result = await session.execute(
        select(Recording)
        .join(Assessment, Recording.assessment_id == Assessment.id)
        .where(Assessment.case_id == case.id)
        .order_by(Recording.created_at.desc())
    )
    return [RecordingResponse.model_validate(item) for item in result.scalars().all()]
