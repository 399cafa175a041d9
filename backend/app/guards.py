from __future__ import annotations

import time

from fastapi import HTTPException, Request, Response

from .config import Settings, settings
from .gate import RateLimitGate, RouteMatcher
from .rate_limit import Clock, RateLimitPolicy, RequestTracker, TrackerSweeper
from .security import client_identifier


def _policy(cfg: Settings, max_requests: int) -> RateLimitPolicy:
    return RateLimitPolicy(
        max_requests=max_requests,
        window_seconds=cfg.rate_limit_window_seconds,
        block_seconds=cfg.rate_limit_block_seconds,
        strike_threshold=cfg.rate_limit_strike_threshold,
        retry_hint_seconds=cfg.rate_limit_retry_hint_seconds,
    )


def build_site_gate(cfg: Settings = settings, clock: Clock = time.time) -> RateLimitGate:
    """Site-wide gate: user-agent check only, applied to the protected route set."""
    tracker = RequestTracker(_policy(cfg, cfg.rate_limit_site_max_requests), clock=clock, scope="site")
    return RateLimitGate(
        tracker,
        routes=RouteMatcher(),
        check_headers=False,
        exempt_non_api_paths=cfg.is_development,
    )


def build_api_gate(cfg: Settings = settings, clock: Clock = time.time) -> RateLimitGate:
    """Per-route gate for expensive API calls: stricter cap and header heuristics."""
    tracker = RequestTracker(_policy(cfg, cfg.rate_limit_api_max_requests), clock=clock, scope="api")
    return RateLimitGate(tracker, routes=None, check_headers=True)


def build_sweepers(site_gate: RateLimitGate, api_gate: RateLimitGate, cfg: Settings = settings) -> list[TrackerSweeper]:
    return [
        TrackerSweeper(site_gate.tracker, cfg.rate_limit_site_sweep_seconds),
        TrackerSweeper(api_gate.tracker, cfg.rate_limit_api_sweep_seconds),
    ]


async def enforce_api_rate_limit(request: Request, response: Response) -> None:
    gate: RateLimitGate = request.app.state.api_gate
    identifier = client_identifier(request, trust_forwarded=settings.trust_forwarded_for)
    outcome = gate.check(identifier, request.headers, request.url.path)

    if outcome.forwarded:
        for name, value in outcome.headers.items():
            response.headers[name] = value
        return

    raise HTTPException(status_code=outcome.status_code, detail=outcome.error_body(), headers=outcome.headers or None)
