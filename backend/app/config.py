from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    env: str
    port: int
    debug: bool
    log_level: str
    cors_origins: list[str]
    frontend_url: str
    enable_prometheus_metrics: bool
    rate_limit_window_seconds: int
    rate_limit_site_max_requests: int
    rate_limit_api_max_requests: int
    rate_limit_block_seconds: int
    rate_limit_strike_threshold: int
    rate_limit_retry_hint_seconds: int
    rate_limit_site_sweep_seconds: int
    rate_limit_api_sweep_seconds: int
    trust_forwarded_for: bool
    gemini_project: str
    gemini_location: str
    gemini_model: str
    gemini_max_output_tokens: int
    gemini_temperature: float
    llm_timeout: float
    job_fetch_timeout: float
    job_html_max_chars: int
    resume_upload_max_bytes: int

    @property
    def is_development(self) -> bool:
        return self.env.lower() in {"development", "dev"}

    @property
    def is_production(self) -> bool:
        return self.env.lower() not in {"development", "dev", "test", "testing"}

    def validate(self) -> None:
        """Raise early on rate limit values that cannot produce a working gate, or an unsafe production setup."""
        if self.rate_limit_window_seconds <= 0:
            raise RuntimeError("RATE_LIMIT_WINDOW_SECONDS must be positive")
        if self.rate_limit_site_max_requests < 1 or self.rate_limit_api_max_requests < 1:
            raise RuntimeError("Rate limit caps must allow at least one request per window")
        if self.rate_limit_strike_threshold < 1:
            raise RuntimeError("RATE_LIMIT_STRIKE_THRESHOLD must be at least 1")
        if self.is_production and self.debug:
            raise RuntimeError("DEBUG must be disabled in production")
        if self.is_production and "*" in self.cors_origins:
            raise RuntimeError("CORS_ORIGINS must list explicit origins in production")


settings = Settings(
    env=os.getenv("ENV", "development"),
    port=_as_int(os.getenv("PORT"), 8000),
    debug=_as_bool(os.getenv("DEBUG"), False),
    log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    cors_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", os.getenv("FRONTEND_URL", "http://localhost:3000")).split(",")
        if origin.strip()
    ],
    frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").strip(),
    enable_prometheus_metrics=_as_bool(os.getenv("ENABLE_PROMETHEUS_METRICS"), True),
    rate_limit_window_seconds=_as_int(os.getenv("RATE_LIMIT_WINDOW_SECONDS"), 60),
    rate_limit_site_max_requests=_as_int(os.getenv("RATE_LIMIT_SITE_MAX_REQUESTS"), 60),
    rate_limit_api_max_requests=_as_int(os.getenv("RATE_LIMIT_API_MAX_REQUESTS"), 30),
    rate_limit_block_seconds=max(1, _as_int(os.getenv("RATE_LIMIT_BLOCK_SECONDS"), 300)),
    rate_limit_strike_threshold=_as_int(os.getenv("RATE_LIMIT_STRIKE_THRESHOLD"), 3),
    rate_limit_retry_hint_seconds=max(1, _as_int(os.getenv("RATE_LIMIT_RETRY_HINT_SECONDS"), 60)),
    rate_limit_site_sweep_seconds=max(1, _as_int(os.getenv("RATE_LIMIT_SITE_SWEEP_SECONDS"), 60)),
    rate_limit_api_sweep_seconds=max(1, _as_int(os.getenv("RATE_LIMIT_API_SWEEP_SECONDS"), 300)),
    trust_forwarded_for=_as_bool(os.getenv("TRUST_FORWARDED_FOR"), True),
    gemini_project=(
        os.getenv("GEMINI_PROJECT")
        or os.getenv("GOOGLE_CLOUD_PROJECT")
        or os.getenv("GCP_PROJECT")
        or ""
    ).strip(),
    gemini_location=os.getenv("GEMINI_LOCATION", "us-central1").strip(),
    gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash").strip(),
    gemini_max_output_tokens=max(1, _as_int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS"), 4096)),
    gemini_temperature=max(0.0, min(2.0, _as_float(os.getenv("GEMINI_TEMPERATURE"), 0.3))),
    llm_timeout=max(1.0, _as_float(os.getenv("LLM_TIMEOUT"), 60.0)),
    job_fetch_timeout=max(1.0, _as_float(os.getenv("JOB_FETCH_TIMEOUT"), 15.0)),
    job_html_max_chars=max(1000, _as_int(os.getenv("JOB_HTML_MAX_CHARS"), 150_000)),
    resume_upload_max_bytes=max(1024, _as_int(os.getenv("RESUME_UPLOAD_MAX_BYTES"), 10 * 1024 * 1024)),
)

settings.validate()
