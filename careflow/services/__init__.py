"""Service layer helpers for external integrations."""

from .llm_client import BedrockLlmClient, LlmInvocationError, get_llm_client
from .storage import StorageError, save_recording
from .transcribe import (
    TranscribeService,
    TranscribedWord,
    TranscriptionError,
    TranscriptionResult,
    get_transcribe_service,
)

__all__ = [
    "BedrockLlmClient",
    "LlmInvocationError",
    "get_llm_client",
    "TranscribeService",
    "TranscribedWord",
    "TranscriptionError",
    "TranscriptionResult",
    "get_transcribe_service",
    "StorageError",
    "save_recording",
]
