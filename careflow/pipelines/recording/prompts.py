"""Prompt builders for the generative stages of the recording pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Mapping, Sequence


@dataclass(frozen=True)
class PromptBundle:
    system_prompt: str
    user_prompt: str


SPEAKER_TURNS_SYSTEM = (
    "You are an expert at analyzing conversations and identifying speaker turns. "
    "Split transcripts accurately at each speaker change, extract real names, "
    "and maintain consistency. Respond with JSON only."
)

_SPEAKER_TURNS_EXAMPLE = {
    "turns": [
        {
            "text": "Hello? Mrs. Thompson? It's David from Home Care Assessments. I called earlier?",
            "speaker": "David",
            "speakerRole": "Social Worker",
        },
        {
            "text": "Oh, yes. Come on in, dear. The door's open.",
            "speaker": "Ellie",
            "speakerRole": "Client",
        },
    ]
}

CONVERSATION_SYSTEM = (
    "You are a professional transcript formatter. Convert raw transcripts into "
    "clear, readable conversation format with proper speaker attribution and "
    "natural dialogue formatting."
)

ASSESSMENT_TOOL_NAME = "record_care_assessment"
ASSESSMENT_TOOL_DESCRIPTION = (
    "Record the completed care assessment: one free-text entry per section plus "
    "a list of action items."
)


def build_speaker_turns_prompt(transcript: str) -> PromptBundle:
    user_prompt = (
        "Analyze this social work assessment conversation and split it into speaker turns. "
        "Each turn is when ONE person speaks continuously before another person speaks.\n\n"
        "Rules:\n"
        '1. Extract real names when mentioned (e.g., "I\'m David" -> "David", "Call me Ellie" -> "Ellie")\n'
        '2. Use "Social Worker" role for the professional conducting the assessment\n'
        '3. Use "Client" role for the person being assessed\n'
        '4. Use "Family Member" for relatives/supporters\n'
        "5. BE CONSISTENT - once you identify a speaker's name, use it throughout\n"
        "6. Split the text precisely at speaker changes - each turn should contain only what ONE person said\n\n"
        "Respond with JSON containing speaker turns in order:\n"
        f"{json.dumps(_SPEAKER_TURNS_EXAMPLE, indent=2)}\n\n"
        f"Transcript:\n{transcript}"
    )
    return PromptBundle(SPEAKER_TURNS_SYSTEM, user_prompt)


def build_conversation_prompt(transcript: str, speaker_roles: Mapping[str, str]) -> PromptBundle:
    user_prompt = (
        "Convert this transcript into a clear conversation format with speaker names and dialogue.\n\n"
        "Format as:\n"
        'Speaker Name: "What they said"\n\n'
        f"Transcript: {transcript}\n\n"
        f"Speaker Information: {json.dumps(dict(speaker_roles))}"
    )
    return PromptBundle(CONVERSATION_SYSTEM, user_prompt)


def build_assessment_prompt(
    conversation: str,
    *,
    client_name: str,
    template_name: str,
    section_names: Sequence[str],
    section_keys: Sequence[str],
) -> PromptBundle:
    system_prompt = (
        "You are an expert social worker specializing in care assessments following "
        "Care Act guidelines. Generate comprehensive, professional care assessment "
        f"reports with sections for: {', '.join(section_names)}. Each section should "
        "contain detailed analysis and actionable recommendations grounded only in "
        "the supplied conversation."
    )
    key_lines = "\n".join(
        f'- "{key}": {name.lower()} analysis and recommendations'
        for key, name in zip(section_keys, section_names)
    )
    user_prompt = (
        f"Generate a {template_name} care assessment for {client_name} from this transcript.\n\n"
        f"Fill exactly these fields:\n{key_lines}\n"
        '- "actionItems": an array of short action points and next steps\n\n'
        "For each section, provide comprehensive analysis relevant to the section name. "
        "Be specific and actionable. Use an empty string when the conversation says "
        "nothing about a section.\n\n"
        f"Transcript: {conversation}"
    )
    return PromptBundle(system_prompt, user_prompt)


def build_default_assessment_prompt(
    conversation: str,
    *,
    client_name: str,
    template_name: str,
) -> PromptBundle:
    user_prompt = (
        f"Generate {template_name} care assessment for {client_name} from this transcript:\n\n"
        "JSON format:\n"
        "{\n"
        '  "overview": "meeting summary and key concerns",\n'
        '  "nutrition": "nutritional needs and challenges",\n'
        '  "hygiene": "hygiene capabilities and support needs",\n'
        '  "homeenvironment": "home safety and maintenance",\n'
        '  "actionItems": ["action points and next steps"]\n'
        "}\n\n"
        f"Transcript: {conversation}"
    )
    system_prompt = (
        "You are an expert social worker specializing in care assessments. "
        "Respond with a single JSON object only."
    )
    return PromptBundle(system_prompt, user_prompt)


def assessment_input_schema(section_keys: Sequence[str]) -> dict:
    """JSON schema for the forced assessment tool: one string per section plus actionItems."""

    properties: dict = {key: {"type": "string"} for key in section_keys}
    properties["actionItems"] = {"type": "array", "items": {"type": "string"}}
    return {
        "type": "object",
        "properties": properties,
        "required": [*section_keys, "actionItems"],
    }


__all__ = [
    "ASSESSMENT_TOOL_DESCRIPTION",
    "ASSESSMENT_TOOL_NAME",
    "PromptBundle",
    "assessment_input_schema",
    "build_assessment_prompt",
    "build_conversation_prompt",
    "build_default_assessment_prompt",
    "build_speaker_turns_prompt",
]
