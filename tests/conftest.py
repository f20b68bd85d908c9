"""Test configuration: point settings at a throwaway SQLite database and upload dir."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="careflow-tests-"))

os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT / 'careflow.db'}"
os.environ["STORAGE_UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["LOG_FILE"] = str(_TEST_ROOT / "logs" / "app.log")
os.environ["PIPELINE_LOG_FILE"] = str(_TEST_ROOT / "logs" / "pipeline.log")
os.environ["TRANSCRIPT_LOG_FILE"] = str(_TEST_ROOT / "logs" / "transcripts.log")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "Admin-pass1"

import pytest  # noqa: E402


@pytest.fixture
def upload_dir() -> Path:
    path = Path(os.environ["STORAGE_UPLOAD_DIR"])
    path.mkdir(parents=True, exist_ok=True)
    return path
