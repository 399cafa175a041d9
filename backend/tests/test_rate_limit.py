import asyncio

import pytest

from app.rate_limit import (
    ClientWindow,
    DecisionKind,
    InMemoryClientWindowStore,
    RateLimitPolicy,
    RequestTracker,
    TrackerSweeper,
)

POLICY = RateLimitPolicy(max_requests=3, window_seconds=60, block_seconds=300, strike_threshold=3)


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(1_000.0)


@pytest.fixture()
def tracker(clock: FakeClock) -> RequestTracker:
    return RequestTracker(POLICY, clock=clock, scope="test")


def _burst(tracker: RequestTracker, identifier: str, count: int, now: float):
    return [tracker.upsert_on_request(identifier, now=now) for _ in range(count)]


def test_first_request_is_allowed_with_quota_left(tracker):
    decision = tracker.upsert_on_request("10.0.0.1", now=0)

    assert decision.kind is DecisionKind.ALLOWED
    assert decision.remaining == POLICY.max_requests - 1
    record = tracker.get("10.0.0.1")
    assert record == ClientWindow(identifier="10.0.0.1", request_count=1, window_start=0)


def test_cap_requests_allowed_then_rate_limited(tracker):
    decisions = _burst(tracker, "10.0.0.1", POLICY.max_requests + 1, now=5)

    assert [d.kind for d in decisions[:-1]] == [DecisionKind.ALLOWED] * POLICY.max_requests
    assert decisions[-2].remaining == 0
    assert decisions[-1].kind is DecisionKind.RATE_LIMITED
    assert decisions[-1].retry_after == 60
    assert tracker.get("10.0.0.1").suspicious_strikes == 1


def test_rate_limited_hint_ignores_time_left_in_window(tracker):
    _burst(tracker, "10.0.0.1", 3, now=0)
    decision = tracker.upsert_on_request("10.0.0.1", now=59)

    assert decision.kind is DecisionKind.RATE_LIMITED
    assert decision.retry_after == 60


def test_window_resets_after_expiry(tracker):
    _burst(tracker, "10.0.0.1", 3, now=0)

    # Exactly at the window edge the old window still counts.
    assert tracker.upsert_on_request("10.0.0.1", now=60).kind is DecisionKind.RATE_LIMITED

    decision = tracker.upsert_on_request("10.0.0.1", now=61)
    assert decision.kind is DecisionKind.ALLOWED
    assert decision.remaining == 2
    record = tracker.get("10.0.0.1")
    assert record.request_count == 1
    assert record.window_start == 61


def test_three_bursts_escalate_to_block():
    tracker = RequestTracker(POLICY, clock=FakeClock(0))
    outcomes = []
    for start in (0, 61, 122):
        outcomes.append([d.kind for d in _burst(tracker, "1.2.3.4", 4, now=start)])

    allowed = [DecisionKind.ALLOWED] * 3
    assert outcomes[0] == allowed + [DecisionKind.RATE_LIMITED]
    assert outcomes[1] == allowed + [DecisionKind.RATE_LIMITED]
    assert outcomes[2] == allowed + [DecisionKind.BLOCKED]

    record = tracker.get("1.2.3.4")
    assert record.suspicious_strikes == 3
    assert record.blocked_until == 122 + 300


def test_blocking_decision_reports_full_block_duration():
    tracker = RequestTracker(POLICY, clock=FakeClock(0))
    for start in (0, 61):
        _burst(tracker, "1.2.3.4", 4, now=start)
    decision = _burst(tracker, "1.2.3.4", 4, now=122)[-1]

    assert decision.kind is DecisionKind.BLOCKED
    assert decision.retry_after == 300
    assert decision.remaining == 0


def test_blocked_client_denied_with_decreasing_retry_after():
    tracker = RequestTracker(POLICY, clock=FakeClock(0))
    for start in (0, 61, 122):
        _burst(tracker, "1.2.3.4", 4, now=start)

    retry_hints = []
    for now in (122.5, 150, 250, 400, 421.2):
        decision = tracker.upsert_on_request("1.2.3.4", now=now)
        assert decision.kind is DecisionKind.BLOCKED
        retry_hints.append(decision.retry_after)

    assert retry_hints == [300, 272, 172, 22, 1]
    assert retry_hints == sorted(retry_hints, reverse=True)


def test_block_lapse_resets_window_but_keeps_strikes():
    tracker = RequestTracker(POLICY, clock=FakeClock(0))
    for start in (0, 61, 122):
        _burst(tracker, "1.2.3.4", 4, now=start)

    decision = tracker.upsert_on_request("1.2.3.4", now=423)
    assert decision.kind is DecisionKind.ALLOWED
    record = tracker.get("1.2.3.4")
    assert record.request_count == 1
    assert record.suspicious_strikes == 3

    # Escalation persists: the next excess request blocks straight away.
    later = _burst(tracker, "1.2.3.4", 3, now=424)
    assert [d.kind for d in later] == [DecisionKind.ALLOWED, DecisionKind.ALLOWED, DecisionKind.BLOCKED]
    assert tracker.get("1.2.3.4").suspicious_strikes == 4


def test_clients_are_tracked_independently(tracker):
    _burst(tracker, "10.0.0.1", 4, now=0)

    decision = tracker.upsert_on_request("10.0.0.2", now=0)
    assert decision.kind is DecisionKind.ALLOWED
    assert len(tracker) == 2


def test_quota_headers_use_window_end_in_milliseconds(tracker):
    decision = tracker.upsert_on_request("10.0.0.1", now=1_700_000_000)

    assert decision.quota_headers() == {
        "X-RateLimit-Limit": "3",
        "X-RateLimit-Remaining": "2",
        "X-RateLimit-Reset": str((1_700_000_000 + 60) * 1000),
    }


def test_tracker_uses_injected_clock(clock, tracker):
    tracker.upsert_on_request("10.0.0.1")
    assert tracker.get("10.0.0.1").window_start == clock.now


def test_sweep_keeps_records_until_idle_for_two_windows(tracker):
    tracker.upsert_on_request("10.0.0.1", now=0)

    assert tracker.sweep(now=100) == 0
    assert tracker.get("10.0.0.1") is not None

    assert tracker.sweep(now=121) == 1
    assert tracker.get("10.0.0.1") is None


def test_sweep_keeps_blocked_records_until_block_lapses():
    tracker = RequestTracker(POLICY, clock=FakeClock(0))
    for start in (0, 61, 122):
        _burst(tracker, "1.2.3.4", 4, now=start)

    assert tracker.sweep(now=300) == 0
    assert tracker.get("1.2.3.4").blocked_until == 422

    assert tracker.sweep(now=423) == 1
    assert tracker.get("1.2.3.4") is None


def test_eviction_clears_strikes():
    tracker = RequestTracker(POLICY, clock=FakeClock(0))
    _burst(tracker, "1.2.3.4", 4, now=0)
    tracker.sweep(now=500)

    tracker.upsert_on_request("1.2.3.4", now=501)
    assert tracker.get("1.2.3.4").suspicious_strikes == 0


def test_tracker_accepts_custom_store():
    store = InMemoryClientWindowStore()
    tracker = RequestTracker(POLICY, store=store)

    tracker.upsert_on_request("10.0.0.1", now=0)
    assert store.get("10.0.0.1").request_count == 1


def test_sweeper_runs_in_background_and_stops():
    tracker = RequestTracker(POLICY, clock=FakeClock(10_000))
    tracker.upsert_on_request("10.0.0.1", now=0)

    async def scenario() -> None:
        sweeper = TrackerSweeper(tracker, interval_seconds=0.01)
        sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.05)
        await sweeper.stop()
        assert not sweeper.running

    asyncio.run(scenario())
    assert tracker.get("10.0.0.1") is None


def test_sweeper_survives_sweep_failure(monkeypatch):
    tracker = RequestTracker(POLICY)
    sweeper = TrackerSweeper(tracker, interval_seconds=60)

    def broken_sweep(now=None):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(tracker, "sweep", broken_sweep)
    assert sweeper.run_once() == 0


def test_sweeper_stop_without_start_is_noop():
    sweeper = TrackerSweeper(RequestTracker(POLICY), interval_seconds=60)
    asyncio.run(sweeper.stop())
    assert not sweeper.running
