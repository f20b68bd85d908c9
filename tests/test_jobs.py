"""Background job registry for pipeline runs."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from careflow.models import RecordingStatus
from careflow.pipelines.recording import JobAlreadyRunningError, PipelineJobRunner, PipelineOutcome


class BlockingPipeline:
    """Pipeline stand-in whose runs finish only when released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.runs = []

    async def run(self, assessment_id, recording_id, audio_file_path, template_name_fallback=None):
        self.runs.append((assessment_id, recording_id, str(audio_file_path), template_name_fallback))
        await self.release.wait()
        return PipelineOutcome(
            recording_id=recording_id,
            assessment_id=assessment_id,
            status=RecordingStatus.COMPLETED,
        )


def test_pipeline_is_built_lazily():
    built = []

    def factory():
        built.append(True)
        return BlockingPipeline()

    runner = PipelineJobRunner(factory)
    assert built == []

    assert runner.pipeline is runner.pipeline
    assert built == [True]


def test_submitted_job_is_tracked_until_it_finishes():
    async def scenario():
        pipeline = BlockingPipeline()
        runner = PipelineJobRunner(lambda: pipeline)
        assessment_id, recording_id = uuid4(), uuid4()

        task = runner.submit(
            assessment_id=assessment_id,
            recording_id=recording_id,
            audio_file_path="uploads/visit.mp3",
            template_name_fallback="Home Visit",
        )
        await asyncio.sleep(0)
        assert runner.is_running(recording_id)
        assert runner.active_jobs() == [recording_id]

        with pytest.raises(JobAlreadyRunningError):
            runner.submit(
                assessment_id=assessment_id,
                recording_id=recording_id,
                audio_file_path="uploads/visit.mp3",
            )

        pipeline.release.set()
        outcome = await task
        await asyncio.sleep(0)

        assert outcome.succeeded
        assert not runner.is_running(recording_id)
        assert runner.active_jobs() == []
        assert pipeline.runs == [(assessment_id, recording_id, "uploads/visit.mp3", "Home Visit")]

    asyncio.run(scenario())


def test_drain_waits_for_outstanding_jobs():
    async def scenario():
        pipeline = BlockingPipeline()
        runner = PipelineJobRunner(lambda: pipeline)
        tasks = [
            runner.submit(assessment_id=uuid4(), recording_id=uuid4(), audio_file_path="a.mp3")
            for _ in range(3)
        ]

        asyncio.get_running_loop().call_later(0.01, pipeline.release.set)
        await runner.drain(timeout=5)

        assert all(task.done() for task in tasks)

    asyncio.run(scenario())


def test_drain_gives_up_after_timeout():
    async def scenario():
        pipeline = BlockingPipeline()
        runner = PipelineJobRunner(lambda: pipeline)
        recording_id = uuid4()
        runner.submit(assessment_id=uuid4(), recording_id=recording_id, audio_file_path="a.mp3")

        await runner.drain(timeout=0.01)

        assert runner.is_running(recording_id)
        pipeline.release.set()
        await runner.drain()

    asyncio.run(scenario())
