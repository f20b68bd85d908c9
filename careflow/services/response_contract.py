"""Pydantic models for validating LLM JSON responses.

The segmentation and assessment stages run model output through these
schemas so that downstream code receives normalized, type-safe objects.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator


class ResponseContractError(RuntimeError):
    """Raised when the LLM response contract cannot be validated."""


class SpeakerTurnPayload(BaseModel):
    text: str
    speaker: str = "Speaker"
    speaker_role: str = Field(default="Speaker", alias="speakerRole")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("speaker", "speaker_role", mode="before")
    @classmethod
    def default_blank_labels(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Speaker"
        return value.strip() if isinstance(value, str) else value


class SpeakerTurnsResponse(BaseModel):
    turns: List[SpeakerTurnPayload] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    @field_validator("turns", mode="after")
    @classmethod
    def drop_empty_turns(cls, turns: List[SpeakerTurnPayload]) -> List[SpeakerTurnPayload]:
        return [turn for turn in turns if turn.text and turn.text.strip()]

    @classmethod
    def from_json(cls, payload: str) -> "SpeakerTurnsResponse":
        return cls.model_validate(_load_json(payload, cls.__name__))


class AssessmentSectionsResponse(BaseModel):
    """Loose wrapper for a plain-JSON assessment answer.

    Section values are kept as-is; the generator projects them onto the
    expected template keys.
    """

    sections: Dict[str, Any] = Field(default_factory=dict)
    action_items: List[str] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "AssessmentSectionsResponse":
        raw_items = data.get("actionItems")
        items = (
            [str(item) for item in raw_items if isinstance(item, (str, int, float))]
            if isinstance(raw_items, list)
            else []
        )
        sections = {key: value for key, value in data.items() if key != "actionItems"}
        return cls(sections=sections, action_items=items)

    @classmethod
    def from_json(cls, payload: str) -> "AssessmentSectionsResponse":
        data = _load_json(payload, cls.__name__)
        if not isinstance(data, dict):
            raise ResponseContractError(f"{cls.__name__}: expected a JSON object")
        return cls.from_mapping(data)


def _load_json(payload: str, title: str) -> Any:
    cleaned = _clean_json_payload(payload)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseContractError(f"{title}: invalid JSON ({exc})") from exc


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and find the first/last brace to extract JSON."""
    if not payload:
        return ""

    # Remove markdown code blocks if present
    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


__all__ = [
    "AssessmentSectionsResponse",
    "ResponseContractError",
    "SpeakerTurnPayload",
    "SpeakerTurnsResponse",
]
