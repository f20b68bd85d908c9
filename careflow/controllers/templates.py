"""Template controller offering CRUD operations for assessment templates."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from careflow.controllers.dependencies import AdminUserDep, CurrentUserDep, SessionDep
from careflow.models import Template
from careflow.views import TemplateCreateRequest, TemplateResponse, TemplateUpdateRequest

router = APIRouter(prefix="/templates", tags=["templates"])


async def _get_template_or_404(session: AsyncSession, template_id: UUID) -> Template:
    template = await session.get(Template, template_id)
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Template not found"
        )
    return template


async def _ensure_unique_name(session: AsyncSession, name: str, exclude_id: UUID | None = None) -> None:
    query = select(Template.id).where(func.lower(Template.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Template.id != exclude_id)
    existing = await session.execute(query)
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Template with this name already exists",
        )


@router.post("/", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TemplateCreateRequest,
    session: SessionDep,
    admin: AdminUserDep,
) -> TemplateResponse:
    name = payload.name.strip()
    await _ensure_unique_name(session, name)

    template = Template(
        name=name,
        description=payload.description,
        sections=payload.sections,
        status=payload.status,
        priority=payload.priority,
        created_by=admin.id,
    )
    session.add(template)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Could not create template",
        ) from exc

    await session.refresh(template)
    return TemplateResponse.model_validate(template)


@router.get("/", response_model=list[TemplateResponse])
async def list_templates(
    session: SessionDep,
    _current_user: CurrentUserDep,
) -> list[TemplateResponse]:
    result = await session.execute(select(Template).order_by(Template.name))
    return [TemplateResponse.model_validate(template) for template in result.scalars().all()]


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: UUID,
    session: SessionDep,
    _current_user: CurrentUserDep,
) -> TemplateResponse:
    return TemplateResponse.model_validate(await _get_template_or_404(session, template_id))


@router.patch("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: UUID,
    payload: TemplateUpdateRequest,
    session: SessionDep,
    _admin: AdminUserDep,
) -> TemplateResponse:
    template = await _get_template_or_404(session, template_id)
    updates = payload.model_dump(exclude_unset=True)

    if "name" in updates and updates["name"] is not None:
        updates["name"] = updates["name"].strip()
        await _ensure_unique_name(session, updates["name"], exclude_id=template.id)

    for field_name, value in updates.items():
        if value is not None:
            setattr(template, field_name, value)

    await session.commit()
    await session.refresh(template)
    return TemplateResponse.model_validate(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: UUID,
    session: SessionDep,
    _admin: AdminUserDep,
) -> Response:
    template = await _get_template_or_404(session, template_id)
    await session.delete(template)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
