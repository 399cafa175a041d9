from dataclasses import replace

import pytest

from app.config import settings


def test_default_settings_are_valid():
    settings.validate()


@pytest.mark.parametrize(
    "overrides",
    [
        {"rate_limit_window_seconds": 0},
        {"rate_limit_api_max_requests": 0},
        {"rate_limit_strike_threshold": 0},
    ],
)
def test_rate_limit_values_are_checked(overrides):
    with pytest.raises(RuntimeError):
        replace(settings, **overrides).validate()


def test_production_rejects_debug():
    production = replace(settings, env="production", debug=False, cors_origins=["https://cv.example.com"])
    production.validate()

    with pytest.raises(RuntimeError, match="DEBUG"):
        replace(production, debug=True).validate()


def test_production_rejects_wildcard_cors():
    production = replace(settings, env="production", debug=False, cors_origins=["*"])
    with pytest.raises(RuntimeError, match="CORS_ORIGINS"):
        production.validate()

    replace(production, env="development").validate()
