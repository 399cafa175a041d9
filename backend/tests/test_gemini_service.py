import asyncio
import time

import pytest

from app.services.gemini_service import (
    GeminiConfigurationError,
    GeminiRuntimeConfig,
    GeminiService,
    GeminiServiceError,
    GeminiServiceTimeoutError,
)


def _service(timeout_seconds: float = 1.0, project: str = "test-project") -> GeminiService:
    return GeminiService(
        GeminiRuntimeConfig(
            project=project,
            location="us-central1",
            model="gemini-2.0-flash",
            timeout_seconds=timeout_seconds,
            max_output_tokens=64,
            temperature=0.2,
        )
    )


def test_generate_text_returns_content(monkeypatch):
    service = _service()

    def fake_generate_sync(prompt: str, json_mode: bool = False, temperature=None) -> str:
        assert json_mode is False
        return f"echo:{prompt}"

    monkeypatch.setattr(service, "_generate_sync", fake_generate_sync)
    result = asyncio.run(service.generate_text("  hello  "))

    assert result == "echo:hello"


def test_generate_text_requires_prompt():
    with pytest.raises(ValueError):
        asyncio.run(_service().generate_text("   "))


def test_generate_json_extracts_object_from_wrapped_text(monkeypatch):
    service = _service()

    def fake_generate_sync(prompt: str, json_mode: bool = False, temperature=None) -> str:
        assert json_mode is True
        return 'Here you go:\n```json\n{"skills": ["Python"]}\n```'

    monkeypatch.setattr(service, "_generate_sync", fake_generate_sync)
    assert asyncio.run(service.generate_json("skills please")) == {"skills": ["Python"]}


def test_generate_json_rejects_non_object(monkeypatch):
    service = _service()
    monkeypatch.setattr(service, "_generate_sync", lambda *_args: '["a", "b"]')

    with pytest.raises(GeminiServiceError, match="must be a JSON object"):
        asyncio.run(service.generate_json("list please"))


def test_generate_json_rejects_garbage(monkeypatch):
    service = _service()
    monkeypatch.setattr(service, "_generate_sync", lambda *_args: "no json here")

    with pytest.raises(GeminiServiceError, match="document response is not valid JSON"):
        asyncio.run(service.generate_json("anything"))


def test_generate_text_timeout(monkeypatch):
    service = _service(timeout_seconds=0.05)

    def slow_generate(*_args) -> str:
        time.sleep(0.3)
        return "late"

    monkeypatch.setattr(service, "_generate_sync", slow_generate)
    with pytest.raises(GeminiServiceTimeoutError):
        asyncio.run(service.generate_text("hello"))


def test_unexpected_errors_are_wrapped(monkeypatch):
    service = _service()

    def broken(*_args) -> str:
        raise ConnectionError("network down")

    monkeypatch.setattr(service, "_generate_sync", broken)
    with pytest.raises(GeminiServiceError) as exc_info:
        asyncio.run(service.generate_text("hello"))
    assert not isinstance(exc_info.value, GeminiServiceTimeoutError)


def test_missing_project_is_configuration_error():
    with pytest.raises(GeminiConfigurationError):
        _service(project="")._get_client()
