"""Startup data: the bootstrap admin account and the default assessment template."""

from __future__ import annotations

import logging

from sqlalchemy import select

from careflow.config.settings import settings
from careflow.database import session_scope
from careflow.models import Template, User, UserRole
from careflow.pipelines.recording.assessment import DEFAULT_SECTIONS
from careflow.utils import hash_password

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_SECTIONS = [*DEFAULT_SECTIONS, "Action Items"]


async def seed_admin_user() -> None:
    """Create the configured admin account if ``ADMIN_PASSWORD`` is set and it does not exist."""

    if settings.security.admin_password is None:
        return

    username = settings.security.admin_username
    async with session_scope() as session:
        result = await session.execute(select(User).where(User.username == username))
        if result.scalar_one_or_none() is not None:
            logger.info("Admin user %s already exists", username)
            return

        session.add(
            User(
                username=username,
                first_name="System",
                last_name="Administrator",
                password_hash=hash_password(settings.security.admin_password.get_secret_value()),
                role=UserRole.ADMIN,
                is_active=True,
            )
        )
        await session.commit()
    logger.info("Created admin user %s", username)


async def ensure_default_template() -> None:
    """Make sure the template new recordings fall back to exists."""

    name = settings.pipeline.default_template
    async with session_scope() as session:
        result = await session.execute(select(Template.id).where(Template.name == name))
        if result.scalar_one_or_none() is not None:
            return

        session.add(
            Template(
                name=name,
                description="Default sections for a general care assessment.",
                sections=list(DEFAULT_TEMPLATE_SECTIONS),
            )
        )
        await session.commit()
    logger.info("Created default template %s", name)


__all__ = ["DEFAULT_TEMPLATE_SECTIONS", "ensure_default_template", "seed_admin_user"]
