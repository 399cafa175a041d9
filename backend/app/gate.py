from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Mapping, Optional

from .metrics import RATE_LIMIT_DECISIONS_TOTAL
from .rate_limit import Decision, RequestTracker
from .security import BotDetector

logger = logging.getLogger("cvtailor.gate")


class GateVerdict(str, Enum):
    PASS_THROUGH = "pass_through"
    ALLOW = "allow"
    FORBIDDEN = "forbidden"
    TOO_MANY_REQUESTS = "too_many_requests"


@dataclass(frozen=True)
class GateOutcome:
    verdict: GateVerdict
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    retry_after: Optional[int] = None
    decision: Optional[Decision] = None

    @property
    def forwarded(self) -> bool:
        return self.verdict in {GateVerdict.PASS_THROUGH, GateVerdict.ALLOW}

    def error_body(self) -> dict[str, Any]:
        if self.verdict is GateVerdict.FORBIDDEN:
            return {"error": "Not allowed"}
        return {"error": "Too many requests", "retryAfter": self.retry_after}


@dataclass(frozen=True)
class RouteMatcher:
    """Decides which paths the gate applies to."""

    api_prefixes: tuple[str, ...] = ("/api/generate", "/api/download")
    exact_paths: tuple[str, ...] = ("/generate", "/download")
    fragments: tuple[str, ...] = ("/auth/",)

    def matches(self, path: str) -> bool:
        if path.startswith("/api/"):
            return any(path.startswith(prefix) for prefix in self.api_prefixes)
        return path in self.exact_paths or any(fragment in path for fragment in self.fragments)


class RateLimitGate:
    """Bot filter in front of a ``RequestTracker``.

    ``check`` never raises for string input: unknown or missing headers simply
    fall through to the tracker.
    """

    def __init__(
        self,
        tracker: RequestTracker,
        bot_detector: Optional[BotDetector] = None,
        routes: Optional[RouteMatcher] = None,
        check_headers: bool = False,
        exempt_non_api_paths: bool = False,
    ) -> None:
        self.tracker = tracker
        self.bot_detector = bot_detector or BotDetector()
        self.routes = routes
        self.check_headers = check_headers
        self.exempt_non_api_paths = exempt_non_api_paths

    @property
    def scope(self) -> str:
        return self.tracker.scope

    def applies_to(self, path: str) -> bool:
        return self.routes is None or self.routes.matches(path)

    def _is_bot(self, headers: Mapping[str, str]) -> bool:
        user_agent = headers.get("user-agent", "")
        if self.check_headers:
            return self.bot_detector.is_likely_bot(user_agent, headers)
        return self.bot_detector.is_bot(user_agent)

    def _record(self, outcome: GateOutcome) -> GateOutcome:
        RATE_LIMIT_DECISIONS_TOTAL.labels(scope=self.scope, outcome=outcome.verdict.value).inc()
        return outcome

    def check(
        self,
        identifier: str,
        headers: Mapping[str, str],
        path: str,
        now: Optional[float] = None,
    ) -> GateOutcome:
        if not self.applies_to(path):
            return GateOutcome(verdict=GateVerdict.PASS_THROUGH)

        normalized = {str(key).lower(): str(value) for key, value in headers.items()}
        if self._is_bot(normalized):
            logger.info(
                "Bot detected and blocked",
                extra={
                    "event": "bot_blocked",
                    "scope": self.scope,
                    "ip": identifier,
                    "user_agent": normalized.get("user-agent", ""),
                    "path": path,
                },
            )
            return self._record(GateOutcome(verdict=GateVerdict.FORBIDDEN, status_code=403))

        if self.exempt_non_api_paths and not path.startswith("/api/"):
            return GateOutcome(verdict=GateVerdict.PASS_THROUGH)

        decision = self.tracker.upsert_on_request(identifier or "unknown", now=now)
        if decision.allowed:
            return self._record(
                GateOutcome(verdict=GateVerdict.ALLOW, headers=decision.quota_headers(), decision=decision)
            )

        logger.info(
            "Request denied by rate limit",
            extra={
                "event": "rate_limit_denied",
                "scope": self.scope,
                "ip": identifier,
                "path": path,
                "reason": decision.kind.value,
                "retry_after": decision.retry_after,
            },
        )
        return self._record(
            GateOutcome(
                verdict=GateVerdict.TOO_MANY_REQUESTS,
                status_code=429,
                headers={"Retry-After": str(decision.retry_after)},
                retry_after=decision.retry_after,
                decision=decision,
            )
        )
