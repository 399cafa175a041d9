from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

REQUESTS_TOTAL = Counter(
    "requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
RATE_LIMIT_DECISIONS_TOTAL = Counter(
    "rate_limit_decisions_total",
    "Rate limit gate decisions",
    ["scope", "outcome"],
)
TRACKED_CLIENTS = Gauge("tracked_clients", "Client windows held by a request tracker", ["scope"])
LLM_CALLS_TOTAL = Counter("llm_calls_total", "Total LLM generation calls")
LLM_TIMEOUTS_TOTAL = Counter("llm_timeouts_total", "Total LLM call timeouts")


__all__ = [
    "CONTENT_TYPE_LATEST",
    "REQUESTS_TOTAL",
    "RATE_LIMIT_DECISIONS_TOTAL",
    "TRACKED_CLIENTS",
    "LLM_CALLS_TOTAL",
    "LLM_TIMEOUTS_TOTAL",
    "generate_latest",
]
