"""Assessment generation stage.

Resolves the template's section names, asks the model for one text per
section plus action items through a forced tool call, and guarantees the
result carries every expected key no matter what the model returns.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select

from careflow.config.settings import settings
from careflow.database import session_scope
from careflow.models import Template
from careflow.services.response_contract import AssessmentSectionsResponse, ResponseContractError

from .prompts import (
    ASSESSMENT_TOOL_DESCRIPTION,
    ASSESSMENT_TOOL_NAME,
    assessment_input_schema,
    build_assessment_prompt,
    build_default_assessment_prompt,
)
from .types import GENERATION_DEGRADED, AssessmentDraft, Degraded, Ok, StageResult

logger = logging.getLogger("careflow.pipeline")

DEFAULT_SECTIONS: tuple[str, ...] = ("Overview", "Nutrition", "Hygiene", "Home Environment")
ACTION_ITEMS_KEY = "actionItems"
FALLBACK_NOTICE = "Assessment could not be generated automatically."

_NON_ALNUM = re.compile(r"[^a-z0-9]")

SectionResolver = Callable[[str], Awaitable[Optional[Sequence[str]]]]


def section_key(name: str) -> str:
    """``"Home Environment"`` -> ``"homeenvironment"``."""

    return _NON_ALNUM.sub("", name.lower())


def expected_section_keys(section_names: Sequence[str]) -> List[str]:
    """Unique, ordered section keys for a template, without the action-items slot."""

    keys: List[str] = []
    for name in section_names:
        key = section_key(str(name))
        if not key or key == ACTION_ITEMS_KEY.lower() or key in keys:
            continue
        keys.append(key)
    return keys


class TemplateSectionResolver:
    """Look up a template's section list by template name."""

    async def __call__(self, template_name: str) -> Optional[List[str]]:
        async with session_scope() as session:
            result = await session.execute(
                select(Template.sections).where(Template.name == template_name)
            )
            sections = result.scalar_one_or_none()
        if not sections:
            return None
        return [str(section) for section in sections if str(section).strip()]


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return "\n".join(str(item).strip() for item in value if isinstance(item, (str, int, float)))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _coerce_action_items(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    items = [str(item).strip() for item in value if isinstance(item, (str, int, float))]
    return [item for item in items if item]


def complete_draft(payload: Mapping[str, Any], keys: Sequence[str]) -> AssessmentDraft:
    """Project a model payload onto exactly ``keys`` (missing -> ``""``) plus action items."""

    sections = {key: _coerce_text(payload.get(key)) for key in keys}
    return AssessmentDraft(sections=sections, action_items=_coerce_action_items(payload.get(ACTION_ITEMS_KEY)))


class AssessmentGenerator:
    def __init__(self, llm, resolver: Optional[SectionResolver] = None) -> None:
        self._llm = llm
        self._resolver = resolver or TemplateSectionResolver()

    async def resolve_sections(self, template_name: str) -> tuple[List[str], Optional[str]]:
        """Return the section names to fill and, when defaults were used, why."""

        try:
            names = await self._resolver(template_name)
        except Exception as exc:
            logger.warning("Template %s lookup failed, using default sections: %s", template_name, exc)
            return list(DEFAULT_SECTIONS), f"template lookup failed: {exc}"

        if not names or not expected_section_keys(names):
            logger.warning("Template %s not found, using default sections", template_name)
            return list(DEFAULT_SECTIONS), f"template {template_name!r} not found"
        return list(names), None

    async def generate(
        self,
        conversation_text: str,
        client_name: str,
        template_name: str,
    ) -> StageResult[AssessmentDraft]:
        names, resolution_issue = await self.resolve_sections(template_name)
        keys = expected_section_keys(names)
        key_names = {section_key(str(name)): str(name) for name in names}

        prompts = build_assessment_prompt(
            conversation_text,
            client_name=client_name,
            template_name=template_name,
            section_names=[key_names[key] for key in keys],
            section_keys=keys,
        )
        try:
            payload = await self._llm.invoke_structured(
                system_prompt=prompts.system_prompt,
                user_prompt=prompts.user_prompt,
                tool_name=ASSESSMENT_TOOL_NAME,
                tool_description=ASSESSMENT_TOOL_DESCRIPTION,
                input_schema=assessment_input_schema(keys),
                max_tokens=settings.pipeline.llm_max_tokens,
            )
            if not isinstance(payload, Mapping):
                raise ResponseContractError("Model did not return the assessment tool input.")
        except Exception as exc:
            logger.error("Failed to generate care assessment for template %s: %s", template_name, exc)
            draft = await self._default_draft(conversation_text, client_name, template_name, keys)
            return Degraded(draft, GENERATION_DEGRADED, f"structured generation failed: {exc}")

        missing = [key for key in keys if not isinstance(payload.get(key), str)]
        if missing:
            logger.info("Assessment payload missing sections %s; filled with empty text", missing)

        draft = complete_draft(payload, keys)
        if resolution_issue:
            return Degraded(draft, GENERATION_DEGRADED, resolution_issue)
        return Ok(draft)

    async def _default_draft(
        self,
        conversation_text: str,
        client_name: str,
        template_name: str,
        keys: Sequence[str],
    ) -> AssessmentDraft:
        """Generic default-section assessment, projected onto ``keys``.

        Default sections that have no matching key are folded into the first
        expected section so their content is not lost.
        """

        prompts = build_default_assessment_prompt(
            conversation_text,
            client_name=client_name,
            template_name=template_name,
        )
        try:
            raw = await self._llm.invoke(
                system_prompt=prompts.system_prompt,
                user_prompt=prompts.user_prompt,
                max_tokens=settings.pipeline.llm_max_tokens,
            )
            if not raw:
                raise ResponseContractError("LLM returned an empty default assessment.")
            parsed = AssessmentSectionsResponse.from_json(raw)
        except Exception as exc:
            logger.error("Default care assessment generation failed: %s", exc)
            sections = {key: "" for key in keys}
            if keys:
                sections[keys[0]] = FALLBACK_NOTICE
            return AssessmentDraft(sections=sections, action_items=[])

        normalized: Dict[str, str] = {}
        for raw_key, value in parsed.sections.items():
            text = _coerce_text(value)
            if text:
                normalized[section_key(raw_key)] = text

        sections = {key: normalized.pop(key, "") for key in keys}
        if keys and normalized:
            extra = "\n\n".join(f"{name.title()}: {text}" for name, text in normalized.items())
            sections[keys[0]] = f"{sections[keys[0]]}\n\n{extra}".strip()
        return AssessmentDraft(sections=sections, action_items=list(parsed.action_items))


__all__ = [
    "ACTION_ITEMS_KEY",
    "AssessmentGenerator",
    "DEFAULT_SECTIONS",
    "FALLBACK_NOTICE",
    "SectionResolver",
    "TemplateSectionResolver",
    "complete_draft",
    "expected_section_keys",
    "section_key",
]
