from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import logging
import math
import time
from typing import Callable, Iterator, Optional, Protocol

from .metrics import TRACKED_CLIENTS

logger = logging.getLogger("cvtailor.rate_limit")

Clock = Callable[[], float]


@dataclass
class ClientWindow:
    """Per-client counters for the current window plus escalation state."""

    identifier: str
    request_count: int
    window_start: float
    suspicious_strikes: int = 0
    blocked_until: Optional[float] = None

    def is_blocked(self, now: float) -> bool:
        return self.blocked_until is not None and self.blocked_until > now

    def window_expired(self, now: float, window_seconds: float) -> bool:
        return self.window_start + window_seconds < now

    def is_evictable(self, now: float, window_seconds: float) -> bool:
        block_lapsed = self.blocked_until is None or self.blocked_until < now
        return block_lapsed and self.window_start + 2 * window_seconds < now


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_seconds: float = 60
    block_seconds: float = 300
    strike_threshold: int = 3
    retry_hint_seconds: int = 60


class DecisionKind(str, Enum):
    ALLOWED = "allowed"
    RATE_LIMITED = "rate_limited"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    limit: int
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return self.kind is DecisionKind.ALLOWED

    def quota_headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at * 1000)),
        }


class ClientWindowStore(Protocol):
    def get(self, identifier: str) -> Optional[ClientWindow]: ...

    def set(self, record: ClientWindow) -> None: ...

    def delete(self, identifier: str) -> None: ...

    def records(self) -> Iterator[ClientWindow]: ...

    def __len__(self) -> int: ...


class InMemoryClientWindowStore:
    """Process-local table; lost on restart and not shared between workers."""

    def __init__(self) -> None:
        self._records: dict[str, ClientWindow] = {}

    def get(self, identifier: str) -> Optional[ClientWindow]:
        return self._records.get(identifier)

    def set(self, record: ClientWindow) -> None:
        self._records[record.identifier] = record

    def delete(self, identifier: str) -> None:
        self._records.pop(identifier, None)

    def records(self) -> Iterator[ClientWindow]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)


class RequestTracker:
    """Counts requests per client in fixed windows and escalates repeat offenders to blocks.

    ``upsert_on_request`` is the only call that changes a record. It never awaits,
    so on a single event loop each update runs to completion before the next one
    (or a sweep) starts.
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        store: Optional[ClientWindowStore] = None,
        clock: Clock = time.time,
        scope: str = "default",
    ) -> None:
        self.policy = policy
        self.scope = scope
        self._store: ClientWindowStore = store if store is not None else InMemoryClientWindowStore()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def now(self) -> float:
        return self._clock()

    def get(self, identifier: str) -> Optional[ClientWindow]:
        return self._store.get(identifier)

    def _decision(self, kind: DecisionKind, record: ClientWindow, retry_after: Optional[int] = None) -> Decision:
        remaining = max(0, self.policy.max_requests - record.request_count) if kind is DecisionKind.ALLOWED else 0
        return Decision(
            kind=kind,
            limit=self.policy.max_requests,
            remaining=remaining,
            reset_at=record.window_start + self.policy.window_seconds,
            retry_after=retry_after,
        )

    def upsert_on_request(self, identifier: str, now: Optional[float] = None) -> Decision:
        now = self.now() if now is None else now
        policy = self.policy

        record = self._store.get(identifier)
        if record is None:
            record = ClientWindow(identifier=identifier, request_count=1, window_start=now)
            self._store.set(record)
            return self._decision(DecisionKind.ALLOWED, record)

        if record.is_blocked(now):
            retry_after = math.ceil(record.blocked_until - now)
            return self._decision(DecisionKind.BLOCKED, record, retry_after=retry_after)

        if record.window_expired(now, policy.window_seconds):
            # An active block was excluded above, so this also clears a lapsed one.
            record.request_count = 1
            record.window_start = now
            self._store.set(record)
            return self._decision(DecisionKind.ALLOWED, record)

        record.request_count += 1
        if record.request_count <= policy.max_requests:
            self._store.set(record)
            return self._decision(DecisionKind.ALLOWED, record)

        record.suspicious_strikes += 1
        if record.suspicious_strikes >= policy.strike_threshold:
            record.blocked_until = now + policy.block_seconds
            self._store.set(record)
            logger.warning(
                "Blocking client after repeated rate limit violations",
                extra={
                    "event": "rate_limit_block",
                    "scope": self.scope,
                    "ip": identifier,
                    "strikes": record.suspicious_strikes,
                    "retry_after": math.ceil(policy.block_seconds),
                },
            )
            return self._decision(DecisionKind.BLOCKED, record, retry_after=math.ceil(policy.block_seconds))

        self._store.set(record)
        logger.info(
            "Rate limit exceeded",
            extra={
                "event": "rate_limit_exceeded",
                "scope": self.scope,
                "ip": identifier,
                "strikes": record.suspicious_strikes,
            },
        )
        return self._decision(DecisionKind.RATE_LIMITED, record, retry_after=policy.retry_hint_seconds)

    def sweep(self, now: Optional[float] = None) -> int:
        """Evict idle records whose block (if any) has lapsed. Returns the number evicted."""
        now = self.now() if now is None else now
        evicted = 0
        for record in self._store.records():
            if record.is_evictable(now, self.policy.window_seconds):
                self._store.delete(record.identifier)
                evicted += 1
        TRACKED_CLIENTS.labels(scope=self.scope).set(len(self._store))
        return evicted


class TrackerSweeper:
    """Background task that runs ``RequestTracker.sweep`` on a fixed interval."""

    def __init__(self, tracker: RequestTracker, interval_seconds: float) -> None:
        self.tracker = tracker
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        try:
            evicted = self.tracker.sweep()
        except Exception:
            logger.exception(
                "Rate limit sweep failed",
                extra={"event": "rate_limit_sweep_failed", "scope": self.tracker.scope},
            )
            return 0

        if evicted:
            logger.debug(
                "Evicted idle client windows",
                extra={"event": "rate_limit_sweep", "scope": self.tracker.scope, "evicted": evicted},
            )
        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
