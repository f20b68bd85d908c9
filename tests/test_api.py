"""HTTP surface: upload, status polling, assessment edits and access control."""

from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from careflow.config.settings import settings
from careflow.database import session_scope
from careflow.main import app
from careflow.models import Assessment, AssessmentStatus, Transcript, TranscriptStatus
from careflow.pipelines.recording import pipeline_jobs
from careflow.seed import DEFAULT_TEMPLATE_SECTIONS

ADMIN = ("admin", "Admin-pass1")
AUDIO = b"ID3\x03\x00fake-mp3-payload"

# Renamed Starlette status constants warn on access; the 413/422 paths must stay silent.
STATUS_CONSTANT_WARNINGS = pytest.mark.filterwarnings("error:'HTTP_:DeprecationWarning")


@pytest.fixture
def submitted_jobs(monkeypatch: pytest.MonkeyPatch) -> list:
    """Capture pipeline submissions instead of running Transcribe and Bedrock."""

    jobs: list = []

    def fake_submit(**kwargs):
        jobs.append(kwargs)

    monkeypatch.setattr(pipeline_jobs, "submit", fake_submit)
    return jobs


@pytest.fixture
def client(submitted_jobs, upload_dir):
    with TestClient(app) as test_client:
        yield test_client


def login(client: TestClient, username: str, password: str) -> dict[str, str]:
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest.fixture
def admin_headers(client) -> dict[str, str]:
    return login(client, *ADMIN)


@pytest.fixture
def worker(client, admin_headers) -> tuple[int, dict[str, str]]:
    username = f"worker{uuid4().hex[:8]}"
    response = client.post(
        "/users/",
        json={"username": username, "password": "Worker-pass1", "firstName": "Dana"},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["id"], login(client, username, "Worker-pass1")


def create_case(client: TestClient, headers: dict[str, str], **extra) -> str:
    response = client.post(
        "/cases/",
        json={"clientName": f"Ellie {uuid4().hex[:6]}", **extra},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


def upload(client: TestClient, case_id: str, headers: dict[str, str], **form):
    return client.post(
        f"/cases/{case_id}/recordings",
        files={"audio": ("visit.mp3", AUDIO, "audio/mpeg")},
        data=form,
        headers=headers,
    )


def mark_completed(assessment_id: str, sections: dict) -> None:
    async def _update() -> None:
        async with session_scope() as session:
            assessment = await session.get(Assessment, UUID(assessment_id))
            assessment.dynamic_sections = sections
            assessment.processing_status = AssessmentStatus.COMPLETED
            await session.commit()

    asyncio.run(_update())


def test_health_and_metrics(client):
    health = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert health.json()["status"] == "healthy"
    assert health.headers["x-request-id"] == "req-123"
    assert client.get("/metrics").status_code == 200


def test_login_rejects_bad_password(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401


def test_upload_creates_assessment_and_queues_pipeline(client, admin_headers, submitted_jobs):
    case_id = create_case(client, admin_headers)

    response = upload(client, case_id, admin_headers, title="First visit")

    assert response.status_code == 202, response.text
    body = response.json()
    assert body["caseId"] == case_id
    assert body["status"] == "pending"

    (job,) = submitted_jobs
    assert str(job["recording_id"]) == body["recordingId"]
    assert str(job["assessment_id"]) == body["assessmentId"]
    assert job["template_name_fallback"] == settings.pipeline.default_template
    assert Path(job["audio_file_path"]).read_bytes() == AUDIO

    status = client.get(f"/recordings/{body['recordingId']}/status", headers=admin_headers).json()
    assert status["status"] == "pending"
    assert status["stage"] == "Queued"
    assert status["totalSteps"] == 5
    assert status["assessmentStatus"] == "processing"
    assert status["jobActive"] is False

    assessment = client.get(f"/assessments/{body['assessmentId']}", headers=admin_headers).json()
    assert assessment["title"] == "First visit"
    assert assessment["template"] == settings.pipeline.default_template
    assert assessment["dynamicSections"] == {}

    audio = client.get(f"/recordings/{body['recordingId']}/audio", headers=admin_headers)
    assert audio.status_code == 200
    assert audio.content == AUDIO
    assert audio.headers["x-content-type-options"] == "nosniff"


def test_default_title_uses_template_and_client(client, admin_headers):
    case_id = create_case(client, admin_headers)
    client_name = client.get(f"/cases/{case_id}", headers=admin_headers).json()["clientName"]

    body = upload(client, case_id, admin_headers, template="Home Visit").json()

    assessment = client.get(f"/assessments/{body['assessmentId']}", headers=admin_headers).json()
    assert assessment["title"] == f"Home Visit - {client_name}"


@STATUS_CONSTANT_WARNINGS
def test_upload_validation(client, admin_headers, monkeypatch, submitted_jobs):
    case_id = create_case(client, admin_headers)

    not_audio = client.post(
        f"/cases/{case_id}/recordings",
        files={"audio": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert not_audio.status_code == 415

    empty = client.post(
        f"/cases/{case_id}/recordings",
        files={"audio": ("visit.mp3", b"", "audio/mpeg")},
        headers=admin_headers,
    )
    assert empty.status_code == 400

    monkeypatch.setattr(settings.storage, "max_upload_mb", 1)
    too_big = client.post(
        f"/cases/{case_id}/recordings",
        files={"audio": ("visit.mp3", b"0" * (1024 * 1024 + 1), "audio/mpeg")},
        headers=admin_headers,
    )
    assert too_big.status_code == 413

    missing_case = upload(client, str(uuid4()), admin_headers)
    assert missing_case.status_code == 404
    assert submitted_jobs == []


def test_content_type_is_guessed_from_file_name(client, admin_headers):
    case_id = create_case(client, admin_headers)

    response = client.post(
        f"/cases/{case_id}/recordings",
        files={"audio": ("visit.wav", b"RIFF-audio", "application/octet-stream")},
        headers=admin_headers,
    )

    assert response.status_code == 202
    recording = client.get(f"/recordings/{response.json()['recordingId']}", headers=admin_headers).json()
    assert recording["contentType"] in {"audio/wav", "audio/x-wav"}


@STATUS_CONSTANT_WARNINGS
def test_patch_merges_sections_and_validates_keys(client, admin_headers):
    case_id = create_case(client, admin_headers)
    assessment_id = upload(client, case_id, admin_headers).json()["assessmentId"]
    url = f"/assessments/{assessment_id}"

    assert client.patch(url, json={"overview": "Too early"}, headers=admin_headers).status_code == 409

    mark_completed(assessment_id, {"overview": "Lives alone.", "nutrition": "Skips lunch."})

    response = client.patch(
        url,
        json={"title": "Reviewed", "overview": "Lives alone, daughter visits weekly.", "actionItems": ["Call GP"]},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["title"] == "Reviewed"
    assert body["actionItems"] == ["Call GP"]
    assert body["dynamicSections"] == {
        "overview": "Lives alone, daughter visits weekly.",
        "nutrition": "Skips lunch.",
    }

    unknown = client.patch(url, json={"favouritecolour": "blue"}, headers=admin_headers)
    assert unknown.status_code == 422
    not_text = client.patch(url, json={"hygiene": 3}, headers=admin_headers)
    assert not_text.status_code == 422


def test_team_member_only_sees_assigned_cases(client, admin_headers, worker):
    worker_id, worker_headers = worker
    hidden_case = create_case(client, admin_headers)
    own_case = create_case(client, admin_headers, assignedTo=worker_id)

    assert client.get(f"/cases/{hidden_case}", headers=worker_headers).status_code == 403
    assert upload(client, hidden_case, worker_headers).status_code == 403

    listed = [case["id"] for case in client.get("/cases/", headers=worker_headers).json()]
    assert listed == [own_case]

    body = upload(client, own_case, worker_headers).json()
    assessments = client.get(f"/cases/{own_case}/assessments", headers=worker_headers).json()
    assert [item["id"] for item in assessments] == [body["assessmentId"]]


def test_delete_assessment_removes_rows_and_audio(client, admin_headers, worker, submitted_jobs):
    _, worker_headers = worker
    case_id = create_case(client, admin_headers)
    body = upload(client, case_id, admin_headers).json()
    stored = Path(submitted_jobs[-1]["audio_file_path"])
    url = f"/assessments/{body['assessmentId']}"

    assert client.delete(url, headers=worker_headers).status_code == 403

    assert client.delete(url, headers=admin_headers).status_code == 204
    assert client.get(url, headers=admin_headers).status_code == 404
    assert client.get(f"/recordings/{body['recordingId']}", headers=admin_headers).status_code == 404
    assert not stored.exists()


def test_template_crud_requires_admin(client, admin_headers, worker):
    _, worker_headers = worker
    payload = {"name": f"Hospital Discharge {uuid4().hex[:6]}", "sections": ["Overview", "Mobility"]}

    assert client.post("/templates/", json=payload, headers=worker_headers).status_code == 403

    created = client.post("/templates/", json=payload, headers=admin_headers)
    assert created.status_code == 201, created.text
    assert client.post("/templates/", json=payload, headers=admin_headers).status_code == 409

    names = [item["name"] for item in client.get("/templates/", headers=worker_headers).json()]
    assert payload["name"] in names
    assert settings.pipeline.default_template in names


def test_user_profile_and_admin_listing(client, admin_headers, worker):
    worker_id, worker_headers = worker

    me = client.get("/users/me", headers=worker_headers).json()
    assert me["id"] == worker_id
    assert isinstance(worker_id, int)
    case_id = create_case(client, admin_headers, assignedTo=worker_id)
    assert UUID(case_id)
    assert client.get(f"/cases/{case_id}", headers=worker_headers).json()["assignedTo"] == worker_id
    assert me["firstName"] == "Dana"
    assert me["role"] == "team_member"

    assert client.get("/users/", headers=worker_headers).status_code == 403
    ids = [user["id"] for user in client.get("/users/", headers=admin_headers).json()]
    assert worker_id in ids


def add_transcript(case_id: str, assessment_id: str, recording_id: str) -> str:
    async def _insert() -> str:
        async with session_scope() as session:
            transcript = Transcript(
                case_id=UUID(case_id),
                assessment_id=UUID(assessment_id),
                recording_id=UUID(recording_id),
                raw_transcript="Hello I'm David",
                enhanced_transcript={"text": "Hello I'm David", "segments": [], "speakers": [], "speakerRoles": {}},
                processing_status=TranscriptStatus.TRANSCRIPTION_COMPLETE,
            )
            session.add(transcript)
            await session.commit()
            return str(transcript.id)

    return asyncio.run(_insert())


def test_default_template_lists_action_items_last(client, admin_headers):
    templates = client.get("/templates/", headers=admin_headers).json()
    (default,) = [item for item in templates if item["name"] == settings.pipeline.default_template]
    assert default["sections"] == DEFAULT_TEMPLATE_SECTIONS
    assert default["sections"][-1] == "Action Items"


@STATUS_CONSTANT_WARNINGS
def test_case_edit_unassign_and_delete(client, admin_headers, worker, submitted_jobs):
    worker_id, worker_headers = worker
    case_id = create_case(client, admin_headers, assignedTo=worker_id)
    url = f"/cases/{case_id}"

    assert client.patch(url, json={"status": "completed"}, headers=worker_headers).status_code == 403
    edited = client.patch(
        url,
        json={"clientName": "Ellie Brooks", "address": "1 Mill Lane", "status": "completed"},
        headers=admin_headers,
    )
    assert edited.status_code == 200, edited.text
    assert edited.json()["clientName"] == "Ellie Brooks"
    assert edited.json()["address"] == "1 Mill Lane"
    assert edited.json()["status"] == "completed"
    assert client.patch(url, json={"clientName": "   "}, headers=admin_headers).status_code == 422

    unassigned = client.patch(f"{url}/unassign", headers=admin_headers)
    assert unassigned.json()["assignedTo"] is None
    assert client.patch(f"{url}/unassign", headers=admin_headers).status_code == 400
    assert client.get(url, headers=worker_headers).status_code == 403

    body = upload(client, case_id, admin_headers).json()
    stored = Path(submitted_jobs[-1]["audio_file_path"])
    add_transcript(case_id, body["assessmentId"], body["recordingId"])

    assert client.delete(url, headers=worker_headers).status_code == 403
    assert client.delete(url, headers=admin_headers).status_code == 204
    assert client.get(url, headers=admin_headers).status_code == 404
    assert client.get(f"/assessments/{body['assessmentId']}", headers=admin_headers).status_code == 404
    assert client.get(f"/recordings/{body['recordingId']}", headers=admin_headers).status_code == 404
    assert not stored.exists()


def test_recordings_and_transcripts_are_listed_per_case_and_assessment(client, admin_headers, worker):
    _, worker_headers = worker
    case_id = create_case(client, admin_headers)
    body = upload(client, case_id, admin_headers).json()
    transcript_id = add_transcript(case_id, body["assessmentId"], body["recordingId"])

    by_assessment = client.get(f"/assessments/{body['assessmentId']}/recordings", headers=admin_headers).json()
    by_case = client.get(f"/cases/{case_id}/recordings", headers=admin_headers).json()
    assert [item["id"] for item in by_assessment] == [body["recordingId"]]
    assert [item["id"] for item in by_case] == [body["recordingId"]]

    transcripts = client.get(f"/cases/{case_id}/transcripts", headers=admin_headers).json()
    assert [item["id"] for item in transcripts] == [transcript_id]
    single = client.get(f"/transcripts/{transcript_id}", headers=admin_headers).json()
    assert single["caseId"] == case_id
    assert single["assessmentId"] == body["assessmentId"]
    assert single["processingStatus"] == "transcription_complete"

    assert client.get(f"/cases/{case_id}/recordings", headers=worker_headers).status_code == 403
    assert client.get(f"/transcripts/{transcript_id}", headers=worker_headers).status_code == 403
    assert client.get(f"/transcripts/{uuid4()}", headers=admin_headers).status_code == 404


def test_assessment_assignment_grants_and_removes_access(client, admin_headers, worker):
    worker_id, worker_headers = worker
    case_id = create_case(client, admin_headers)
    assessment_id = upload(client, case_id, admin_headers).json()["assessmentId"]
    url = f"/assessments/{assessment_id}"

    assert client.get(url, headers=worker_headers).status_code == 403
    admin_id = client.get("/users/me", headers=admin_headers).json()["id"]
    not_team_member = client.post(f"{url}/assign", json={"assignedTo": admin_id}, headers=admin_headers)
    assert not_team_member.status_code == 400

    assigned = client.post(f"{url}/assign", json={"assignedTo": worker_id}, headers=admin_headers)
    assert assigned.status_code == 200, assigned.text
    assert assigned.json()["assignedTo"] == worker_id
    assert assigned.json()["assignedBy"] == admin_id
    assert client.get(url, headers=worker_headers).status_code == 200
    mine = client.get("/users/me/assessments", headers=worker_headers).json()
    assert [item["id"] for item in mine] == [assessment_id]

    unassigned = client.patch(f"{url}/unassign", headers=admin_headers)
    assert unassigned.json()["assignedTo"] is None
    assert client.get(url, headers=worker_headers).status_code == 403
    assert client.get("/users/me/assessments", headers=worker_headers).json() == []


def test_revoked_users_lose_access_until_restored(client, admin_headers, worker):
    worker_id, worker_headers = worker
    admin_id = client.get("/users/me", headers=admin_headers).json()["id"]
    username = client.get("/users/me", headers=worker_headers).json()["username"]

    assert client.patch(f"/users/{admin_id}/revoke-access", headers=admin_headers).status_code == 400
    assert client.patch(f"/users/{worker_id}/revoke-access", headers=worker_headers).status_code == 403

    revoked = client.patch(f"/users/{worker_id}/revoke-access", headers=admin_headers)
    assert revoked.json()["isActive"] is False
    assert client.get("/users/me", headers=worker_headers).status_code == 401
    denied = client.post("/auth/login", json={"username": username, "password": "Worker-pass1"})
    assert denied.status_code == 403

    restored = client.patch(f"/users/{worker_id}/restore-access", headers=admin_headers)
    assert restored.json()["isActive"] is True
    login(client, username, "Worker-pass1")
    assert client.patch("/users/999999/restore-access", headers=admin_headers).status_code == 404


def test_profile_edit_and_password_change(client, admin_headers, worker):
    _, worker_headers = worker
    username = client.get("/users/me", headers=worker_headers).json()["username"]
    email = f"{username}@example.com"

    profile = client.patch(
        "/users/me",
        json={"firstName": "Dana", "lastName": "Reyes", "email": email},
        headers=worker_headers,
    )
    assert profile.status_code == 200, profile.text
    assert profile.json()["lastName"] == "Reyes"
    assert profile.json()["email"] == email

    taken = client.patch(
        "/users/me",
        json={"firstName": "Sys", "lastName": "Admin", "email": email},
        headers=admin_headers,
    )
    assert taken.status_code == 409

    wrong = client.patch(
        "/users/me/password",
        json={"currentPassword": "not-it", "newPassword": "Fresh-pass2"},
        headers=worker_headers,
    )
    assert wrong.status_code == 400
    weak = client.patch(
        "/users/me/password",
        json={"currentPassword": "Worker-pass1", "newPassword": "alllowercase"},
        headers=worker_headers,
    )
    assert weak.status_code == 422

    changed = client.patch(
        "/users/me/password",
        json={"currentPassword": "Worker-pass1", "newPassword": "Fresh-pass2"},
        headers=worker_headers,
    )
    assert changed.status_code == 204
    assert client.post("/auth/login", json={"username": username, "password": "Worker-pass1"}).status_code == 401
    login(client, email, "Fresh-pass2")
