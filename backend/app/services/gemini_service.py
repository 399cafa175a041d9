"""Gemini access for document generation.

CV, cover letter and skills prompts ask for JSON objects that the document
service validates against its pydantic schemas; job extraction asks for plain
text. Calls run in a worker thread under `LLM_TIMEOUT`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import lru_cache
import json
import logging
from threading import Lock
from typing import Any, Optional

from ..config import settings
from ..metrics import LLM_CALLS_TOTAL, LLM_TIMEOUTS_TOTAL

logger = logging.getLogger("cvtailor.gemini")


class GeminiServiceError(RuntimeError):
    """Raised when a document, skills list or job description could not be generated."""


class GeminiConfigurationError(GeminiServiceError):
    """Raised when the Vertex AI project or ADC credentials are missing; routes map it to 503."""


class GeminiServiceTimeoutError(GeminiServiceError):
    """Raised when generation exceeds `LLM_TIMEOUT`; routes map it to 504."""


@dataclass(frozen=True)
class GeminiRuntimeConfig:
    project: str
    location: str
    model: str
    timeout_seconds: float
    max_output_tokens: int
    temperature: float


class GeminiService:
    """Vertex AI Gemini client shared by the CV, cover letter, skills and job extraction calls."""

    def __init__(self, cfg: GeminiRuntimeConfig) -> None:
        self._cfg = cfg
        self._client: Any | None = None
        self._client_lock = Lock()

    def _build_client(self) -> Any:
        if not self._cfg.project:
            raise GeminiConfigurationError("GEMINI_PROJECT (or GOOGLE_CLOUD_PROJECT) is not set")

        from google import genai
        from google.auth.exceptions import DefaultCredentialsError

        try:
            return genai.Client(
                vertexai=True,
                project=self._cfg.project,
                location=self._cfg.location,
            )
        except DefaultCredentialsError as exc:
            logger.exception(
                "Gemini ADC credentials are unavailable",
                extra={"event": "gemini_adc_missing"},
            )
            raise GeminiConfigurationError("ADC credentials are not configured") from exc
        except Exception as exc:
            logger.exception(
                "Gemini client initialization failed",
                extra={"event": "gemini_client_init_failed"},
            )
            raise GeminiConfigurationError("Failed to initialize Gemini client") from exc

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        with self._client_lock:
            if self._client is None:
                self._client = self._build_client()
        return self._client

    @staticmethod
    def _extract_response_text(response: Any) -> str:
        text_value = (getattr(response, "text", None) or "").strip()
        if text_value:
            return text_value

        candidates = getattr(response, "candidates", None) or []
        for candidate in candidates:
            content = getattr(candidate, "content", None)
            parts = getattr(content, "parts", None) or []
            merged = [str(getattr(part, "text", "")).strip() for part in parts if getattr(part, "text", None)]
            if merged:
                return "\n".join(merged)
        return ""

    def _generate_sync(self, prompt: str, json_mode: bool = False, temperature: Optional[float] = None) -> str:
        from google.genai import types as genai_types

        client = self._get_client()
        config = genai_types.GenerateContentConfig(
            temperature=self._cfg.temperature if temperature is None else temperature,
            max_output_tokens=self._cfg.max_output_tokens,
            response_mime_type="application/json" if json_mode else None,
        )
        response = client.models.generate_content(
            model=self._cfg.model,
            contents=prompt,
            config=config,
        )
        text_value = self._extract_response_text(response).strip()
        if not text_value:
            raise GeminiServiceError("Gemini returned no document text")
        return text_value

    @staticmethod
    def _extract_json_payload(raw_text: str) -> Any:
        try:
            return json.loads(raw_text)
        except json.JSONDecodeError:
            pass

        brace_start = raw_text.find("{")
        brace_end = raw_text.rfind("}")
        if brace_start != -1 and brace_end != -1 and brace_end > brace_start:
            try:
                return json.loads(raw_text[brace_start : brace_end + 1])
            except json.JSONDecodeError:
                pass

        raise GeminiServiceError("Gemini document response is not valid JSON")

    async def _run(self, prompt: str, json_mode: bool, temperature: Optional[float]) -> str:
        cleaned_prompt = prompt.strip()
        if not cleaned_prompt:
            raise ValueError("Document prompt is required")

        LLM_CALLS_TOTAL.inc()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._generate_sync, cleaned_prompt, json_mode, temperature),
                timeout=self._cfg.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            LLM_TIMEOUTS_TOTAL.inc()
            logger.warning(
                "Gemini request timeout",
                extra={
                    "event": "gemini_timeout",
                    "reason": "deadline_exceeded",
                },
            )
            raise GeminiServiceTimeoutError("Gemini request timed out") from exc
        except (GeminiServiceError, ValueError):
            raise
        except Exception as exc:
            logger.exception(
                "Gemini generation failed",
                extra={
                    "event": "gemini_generation_failed",
                    "reason": exc.__class__.__name__,
                },
            )
            raise GeminiServiceError("Gemini request failed") from exc

    async def generate_text(self, prompt: str, temperature: Optional[float] = None) -> str:
        return await self._run(prompt, json_mode=False, temperature=temperature)

    async def generate_json(self, prompt: str, temperature: Optional[float] = None) -> dict[str, Any]:
        raw_text = await self._run(prompt, json_mode=True, temperature=temperature)
        payload = self._extract_json_payload(raw_text)
        if not isinstance(payload, dict):
            raise GeminiServiceError("Gemini document payload must be a JSON object")
        return payload


@lru_cache(maxsize=1)
def get_gemini_service() -> GeminiService:
    return GeminiService(
        GeminiRuntimeConfig(
            project=settings.gemini_project,
            location=settings.gemini_location,
            model=settings.gemini_model,
            timeout_seconds=settings.llm_timeout,
            max_output_tokens=settings.gemini_max_output_tokens,
            temperature=settings.gemini_temperature,
        )
    )


async def generate_text(prompt: str, temperature: Optional[float] = None) -> str:
    return await get_gemini_service().generate_text(prompt, temperature=temperature)


async def generate_json(prompt: str, temperature: Optional[float] = None) -> dict[str, Any]:
    """Generate a JSON object; callers validate it against their own schema."""

    return await get_gemini_service().generate_json(prompt, temperature=temperature)
