"""Conversation formatting stage: re-render the transcript as ``Speaker: "utterance"`` lines."""

from __future__ import annotations

import logging

from careflow.config.settings import settings

from .prompts import build_conversation_prompt
from .types import FORMATTING_DEGRADED, Degraded, EnhancedTranscript, Ok, StageResult

logger = logging.getLogger("careflow.pipeline")


class ConversationFormatter:
    def __init__(self, llm) -> None:
        self._llm = llm

    async def format(self, text: str, enhanced: EnhancedTranscript) -> StageResult[str]:
        """Return the formatted dialogue, or the original text unchanged if formatting fails."""

        prompts = build_conversation_prompt(text, enhanced.speaker_roles)
        try:
            formatted = await self._llm.invoke(
                system_prompt=prompts.system_prompt,
                user_prompt=prompts.user_prompt,
                max_tokens=settings.pipeline.llm_max_tokens,
            )
        except Exception as exc:
            logger.warning("Conversation formatting failed, using original transcript: %s", exc)
            return Degraded(text, FORMATTING_DEGRADED, str(exc))

        if not formatted or not formatted.strip():
            logger.warning("Conversation formatting returned nothing, using original transcript")
            return Degraded(text, FORMATTING_DEGRADED, "empty response")
        return Ok(formatted.strip())


__all__ = ["ConversationFormatter"]
