"""Thin Bedrock client wrapper for text-generation invocations."""

from __future__ import annotations

import base64
import logging
from functools import lru_cache
from typing import Any, Mapping, Optional

import boto3
from fastapi.concurrency import run_in_threadpool

from careflow.config.settings import settings

logger = logging.getLogger(__name__)


class LlmInvocationError(RuntimeError):
    """Raised when the Bedrock invocation fails."""


def _decode_bedrock_api_key(secret_value: Optional[str]) -> tuple[str, str] | None:
    """Decode the BEDROCK_API_KEY secret into access/secret key components."""

    if not secret_value:
        return None

    try:
        decoded_bytes = base64.b64decode(secret_value.strip())
    except ValueError:
        decoded_bytes = secret_value.encode("utf-8", "ignore")

    filtered = "".join(chr(b) for b in decoded_bytes if 31 < b < 127)
    if ":" not in filtered:
        return None
    access_key, secret_key = filtered.split(":", 1)
    return access_key, secret_key


def _create_bedrock_runtime(credentials: tuple[str, str] | None) -> Any:
    """Build the bedrock-runtime client from the Bedrock API key, else the shared AWS keys."""

    client_kwargs: dict[str, Any] = {"region_name": settings.bedrock.region or settings.aws.region}
    if credentials is not None:
        client_kwargs["aws_access_key_id"], client_kwargs["aws_secret_access_key"] = credentials
    elif settings.aws.access_key and settings.aws.secret_key:
        client_kwargs["aws_access_key_id"] = settings.aws.access_key
        client_kwargs["aws_secret_access_key"] = settings.aws.secret_key
    return boto3.client("bedrock-runtime", **client_kwargs)


class BedrockLlmClient:
    """Invoke Amazon Bedrock models with standard configuration."""

    def __init__(self) -> None:
        self._model_id = settings.bedrock.model_id

        credentials = None
        if settings.bedrock.api_key:
            credentials = _decode_bedrock_api_key(settings.bedrock.api_key.get_secret_value())

        try:
            self._client = _create_bedrock_runtime(credentials)
        except Exception as exc:  # pragma: no cover - configuration issue
            logger.warning("Could not initialise Bedrock client: %s", exc)
            self._client = None

    def _inference_config(
        self,
        max_tokens: int | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        return {
            "maxTokens": max_tokens or settings.bedrock.max_tokens,
            "temperature": (
                temperature
                if temperature is not None
                else settings.bedrock.temperature
            ),
            "topP": settings.bedrock.top_p,
        }

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str | None:
        """Run a Bedrock `converse` call and return the aggregate text output."""

        if not self._client or not self._model_id:
            raise LlmInvocationError("Bedrock client is not configured.")

        inference_cfg = self._inference_config(max_tokens, temperature)

        def _call() -> str:
            response = self._client.converse(
                modelId=self._model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            texts = [block.get("text", "") for block in content_blocks if block.get("text")]
            return "\n".join(texts).strip()

        try:
            result = await run_in_threadpool(_call)
        except Exception as exc:  # pragma: no cover - external dependency
            raise LlmInvocationError(str(exc)) from exc

        return result or None

    async def invoke_structured(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        tool_name: str,
        tool_description: str,
        input_schema: Mapping[str, Any],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any] | None:
        """Force the model to answer through a single tool whose input matches ``input_schema``.

        Returns the tool input object, or ``None`` when the model produced no
        tool call.
        """

        if not self._client or not self._model_id:
            raise LlmInvocationError("Bedrock client is not configured.")

        inference_cfg = self._inference_config(max_tokens, temperature)
        tool_config = {
            "tools": [
                {
                    "toolSpec": {
                        "name": tool_name,
                        "description": tool_description,
                        "inputSchema": {"json": dict(input_schema)},
                    }
                }
            ],
            "toolChoice": {"tool": {"name": tool_name}},
        }

        def _call() -> dict[str, Any] | None:
            response = self._client.converse(
                modelId=self._model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
                toolConfig=tool_config,
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            for block in content_blocks:
                tool_use = block.get("toolUse")
                if tool_use and tool_use.get("name") == tool_name:
                    payload = tool_use.get("input")
                    return payload if isinstance(payload, dict) else None
            return None

        try:
            return await run_in_threadpool(_call)
        except Exception as exc:  # pragma: no cover - external dependency
            raise LlmInvocationError(str(exc)) from exc


@lru_cache(maxsize=1)
def get_llm_client() -> BedrockLlmClient:
    """Return a lazily-instantiated Bedrock client singleton."""

    return BedrockLlmClient()


__all__ = ["BedrockLlmClient", "LlmInvocationError", "get_llm_client"]
