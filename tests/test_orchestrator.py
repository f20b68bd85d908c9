"""Pipeline orchestration: status walk, degraded stages and terminal failure."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy import select

from careflow.database import init_models, session_scope
from careflow.models import (
    Assessment,
    AssessmentStatus,
    Case,
    Recording,
    RecordingStatus,
    Template,
    Transcript,
    TranscriptStatus,
)
from careflow.pipelines.recording import (
    AssessmentGenerator,
    ConversationFormatter,
    RecordingPipeline,
    SQLAlchemyPipelineRepository,
    SpeakerSegmentationEngine,
    TemplateSectionResolver,
    TranscriptionAdapter,
    merge_sections,
)
from careflow.pipelines.recording.types import FORMATTING_DEGRADED
from careflow.services.llm_client import LlmInvocationError
from careflow.services.transcribe import TranscriptionError

from tests.fakes import FakeLlm, FakeRepository, FakeSpeech, turns_json, words_for

SPOKEN = "Hello I'm David Oh hi David I'm Ellie"
FORMATTED = 'David: "Hello, I\'m David."\nEllie: "Oh hi David, I\'m Ellie."'


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "visit.wav"
    path.write_bytes(b"RIFF-fake-audio")
    return path


def build_pipeline(repository, llm, speech):
    async def resolve(template_name):
        return ["Overview", "Hygiene"]

    return RecordingPipeline(
        repository=repository,
        transcription=TranscriptionAdapter(speech, SpeakerSegmentationEngine(llm)),
        formatter=ConversationFormatter(llm),
        generator=AssessmentGenerator(llm, resolve),
    )


def scripted_llm(formatted=FORMATTED, structured=None):
    return FakeLlm(
        responses=[
            turns_json(
                ("Hello I'm David", "David", "Social Worker"),
                ("Oh hi David I'm Ellie", "Ellie", "Client"),
            ),
            formatted,
        ],
        structured=[structured or {"overview": "Ellie lives alone.", "hygiene": "Independent.", "actionItems": ["Review in 6 weeks"]}],
    )


def run(pipeline, repository, audio_file):
    return asyncio.run(
        pipeline.run(repository.assessment_id, repository.recording_id, audio_file, "Home Visit")
    )


def test_successful_run_walks_every_status(audio_file):
    repository = FakeRepository()
    speech = FakeSpeech(SPOKEN, words=words_for(SPOKEN), duration=4.0)
    pipeline = build_pipeline(repository, scripted_llm(), speech)

    outcome = run(pipeline, repository, audio_file)

    assert outcome.succeeded
    assert outcome.degraded == ()
    assert repository.recording_statuses == [
        RecordingStatus.TRANSCRIBING,
        RecordingStatus.GENERATING_CONVERSATION,
        RecordingStatus.GENERATING_ASSESSMENT,
        RecordingStatus.FINALIZING,
        RecordingStatus.COMPLETED,
    ]
    assert repository.duration == 4.0
    assert repository.assessment_status == AssessmentStatus.COMPLETED
    assert repository.dynamic_sections == {"overview": "Ellie lives alone.", "hygiene": "Independent."}
    assert repository.action_items == ["Review in 6 weeks"]

    (transcript,) = repository.transcripts.values()
    assert transcript["complete"]
    assert transcript["raw_transcript"] == SPOKEN
    assert transcript["enhanced_transcript"]["conversationFormat"] == FORMATTED
    assert transcript["enhanced_transcript"]["speakerRoles"] == {"David": "Social Worker", "Ellie": "Client"}


def test_transcription_failure_marks_everything_failed(tmp_path):
    repository = FakeRepository()
    pipeline = build_pipeline(repository, scripted_llm(), FakeSpeech(SPOKEN))

    outcome = run(pipeline, repository, tmp_path / "missing.wav")

    assert outcome.status == RecordingStatus.FAILED
    assert outcome.failed_stage == "transcription"
    assert repository.recording_status == RecordingStatus.FAILED
    assert repository.assessment_status == AssessmentStatus.FAILED
    assert repository.transcripts == {}


def test_provider_error_marks_everything_failed(audio_file):
    repository = FakeRepository()
    speech = FakeSpeech(error=TranscriptionError("file not found"))
    pipeline = build_pipeline(repository, scripted_llm(), speech)

    outcome = run(pipeline, repository, audio_file)

    assert outcome.error == "file not found"
    assert repository.recording_statuses == [RecordingStatus.TRANSCRIBING, RecordingStatus.FAILED]
    assert repository.assessment_status == AssessmentStatus.FAILED
    assert repository.transcripts == {}


def test_formatter_failure_still_completes_with_raw_transcript(audio_file):
    repository = FakeRepository()
    llm = scripted_llm(formatted=LlmInvocationError("throttled"))
    speech = FakeSpeech(SPOKEN, words=words_for(SPOKEN), duration=4.0)
    pipeline = build_pipeline(repository, llm, speech)

    outcome = run(pipeline, repository, audio_file)

    assert outcome.succeeded
    assert FORMATTING_DEGRADED in outcome.degraded
    assert repository.recording_status == RecordingStatus.COMPLETED
    (call,) = llm.structured_calls
    assert call["user_prompt"].endswith(f"Transcript: {SPOKEN}")


def test_generation_fallback_still_reports_completed(audio_file):
    repository = FakeRepository()
    llm = FakeLlm(
        responses=[
            turns_json((SPOKEN, "David", "Social Worker")),
            FORMATTED,
            '{"overview": "Fallback overview", "actionItems": []}',
        ],
        structured=[LlmInvocationError("tool use refused")],
    )
    speech = FakeSpeech(SPOKEN, words=words_for(SPOKEN), duration=4.0)

    outcome = run(build_pipeline(repository, llm, speech), repository, audio_file)

    assert outcome.status == RecordingStatus.COMPLETED
    assert repository.assessment_status == AssessmentStatus.COMPLETED
    assert repository.dynamic_sections == {"overview": "Fallback overview", "hygiene": ""}


def test_missing_assessment_fails_before_transcribing(audio_file):
    repository = FakeRepository()
    pipeline = build_pipeline(repository, scripted_llm(), FakeSpeech(SPOKEN))

    outcome = asyncio.run(pipeline.run(repository.case_id, repository.recording_id, audio_file))

    assert outcome.failed_stage == "load"
    assert RecordingStatus.TRANSCRIBING not in repository.recording_statuses


def test_existing_sections_outside_the_template_are_kept(audio_file):
    repository = FakeRepository(dynamic_sections={"notes": "Keep me", "overview": "old"})
    speech = FakeSpeech(SPOKEN, words=words_for(SPOKEN), duration=4.0)

    run(build_pipeline(repository, scripted_llm(), speech), repository, audio_file)

    assert repository.dynamic_sections == {
        "notes": "Keep me",
        "overview": "Ellie lives alone.",
        "hygiene": "Independent.",
    }


def test_rerunning_with_the_same_output_does_not_change_sections(audio_file):
    repository = FakeRepository(dynamic_sections={"notes": "Keep me"})
    speech = FakeSpeech(SPOKEN, words=words_for(SPOKEN), duration=4.0)

    run(build_pipeline(repository, scripted_llm(), speech), repository, audio_file)
    first = dict(repository.dynamic_sections)
    run(build_pipeline(repository, scripted_llm(), speech), repository, audio_file)

    assert repository.dynamic_sections == first


def test_merge_sections_is_idempotent():
    existing = {"notes": "n", "overview": "old"}
    generated = {"overview": "new", "hygiene": ""}

    once = merge_sections(existing, generated)

    assert merge_sections(once, generated) == once
    assert once == {"notes": "n", "overview": "new", "hygiene": ""}
    assert existing == {"notes": "n", "overview": "old"}


def seed_recording(sections: list[str], existing: dict | None = None):
    """Insert a template, case, assessment and pending recording; return their keys."""

    async def _seed():
        await init_models()
        async with session_scope() as session:
            template = Template(name=f"Home Visit {uuid4().hex[:8]}", sections=sections)
            case = Case(client_name="Ellie")
            session.add_all([template, case])
            await session.flush()

            assessment = Assessment(
                case_id=case.id,
                title="Home Visit - Ellie",
                template=template.name,
                dynamic_sections=existing or {},
                action_items=[],
                processing_status=AssessmentStatus.PROCESSING,
            )
            session.add(assessment)
            await session.flush()

            recording = Recording(
                assessment_id=assessment.id,
                file_name="visit.wav",
                file_path="visit.wav",
                processing_status=RecordingStatus.PENDING,
            )
            session.add(recording)
            await session.commit()
            return template.name, assessment.id, recording.id

    return asyncio.run(_seed())


def load_rows(assessment_id, recording_id):
    async def _load():
        async with session_scope() as session:
            assessment = await session.get(Assessment, assessment_id)
            recording = await session.get(Recording, recording_id)
            result = await session.execute(
                select(Transcript).where(Transcript.recording_id == recording_id)
            )
            return assessment, recording, list(result.scalars().all())

    return asyncio.run(_load())


def database_pipeline(llm, speech):
    return RecordingPipeline(
        repository=SQLAlchemyPipelineRepository(),
        transcription=TranscriptionAdapter(speech, SpeakerSegmentationEngine(llm)),
        formatter=ConversationFormatter(llm),
        generator=AssessmentGenerator(llm, TemplateSectionResolver()),
    )


def test_database_run_persists_sections_and_transcript(audio_file):
    template_name, assessment_id, recording_id = seed_recording(
        ["Overview", "Home Environment"], existing={"notes": "Keep me"}
    )
    llm = scripted_llm(structured={"overview": "Ellie lives alone.", "actionItems": ["Book a follow-up"]})
    speech = FakeSpeech(SPOKEN, words=words_for(SPOKEN), duration=4.0)

    outcome = asyncio.run(
        database_pipeline(llm, speech).run(assessment_id, recording_id, audio_file, template_name)
    )

    assert outcome.succeeded
    assessment, recording, transcripts = load_rows(assessment_id, recording_id)
    assert recording.processing_status == RecordingStatus.COMPLETED
    assert recording.duration == 4.0
    assert assessment.processing_status == AssessmentStatus.COMPLETED
    assert assessment.dynamic_sections == {
        "notes": "Keep me",
        "overview": "Ellie lives alone.",
        "homeenvironment": "",
    }
    assert assessment.action_items == ["Book a follow-up"]

    (transcript,) = transcripts
    assert transcript.processing_status == TranscriptStatus.TRANSCRIPTION_COMPLETE
    assert transcript.raw_transcript == SPOKEN
    assert transcript.enhanced_transcript["conversationFormat"] == FORMATTED

    (call,) = llm.structured_calls
    assert set(call["input_schema"]["properties"]) == {"overview", "homeenvironment", "actionItems"}


def test_database_run_with_provider_error_leaves_no_transcript(audio_file):
    template_name, assessment_id, recording_id = seed_recording(["Overview"])
    speech = FakeSpeech(error=TranscriptionError("file not found"))

    outcome = asyncio.run(
        database_pipeline(scripted_llm(), speech).run(assessment_id, recording_id, audio_file, template_name)
    )

    assert outcome.status == RecordingStatus.FAILED
    assessment, recording, transcripts = load_rows(assessment_id, recording_id)
    assert recording.processing_status == RecordingStatus.FAILED
    assert assessment.processing_status == AssessmentStatus.FAILED
    assert transcripts == []
