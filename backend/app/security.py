from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Mapping, Optional

from fastapi import Request

_HTML_ESCAPES = (
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("/", "&#x2F;"),
)
_API_KEY_RE = re.compile(r"^[a-zA-Z0-9_-]{32,}$")

DENIED_AGENT_PATTERNS = (
    "bot",
    "crawl",
    "spider",
    "scrape",
    "headless",
    "selenium",
    "puppeteer",
    "chrome-lighthouse",
    "slurp",
    "dataminer",
    "wget",
    "curl",
)
ALLOWED_AGENT_PATTERNS = ("googlebot", "bingbot", "yandexbot", "duckduckbot")

SECURITY_HEADERS = {
    "X-DNS-Prefetch-Control": "on",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "X-XSS-Protection": "1; mode=block",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), interest-cohort=()",
}


def sanitize_input(value: str) -> str:
    if not value:
        return ""
    for raw, escaped in _HTML_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def sanitize_object(obj: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``obj`` with every nested string HTML-escaped."""

    def _clean(value: Any) -> Any:
        if isinstance(value, str):
            return sanitize_input(value)
        if isinstance(value, Mapping):
            return {key: _clean(item) for key, item in value.items()}
        if isinstance(value, list):
            return [_clean(item) for item in value]
        return value

    return {key: _clean(value) for key, value in obj.items()}


def is_valid_api_key_format(api_key: Optional[str]) -> bool:
    if not api_key or not isinstance(api_key, str):
        return False
    return bool(_API_KEY_RE.match(api_key))


@dataclass(frozen=True)
class BotDetector:
    """User-agent heuristics. Allowed crawlers always win over the denylist."""

    denied: tuple[str, ...] = DENIED_AGENT_PATTERNS
    allowed: tuple[str, ...] = ALLOWED_AGENT_PATTERNS
    _denied_re: re.Pattern[str] = field(init=False, repr=False)
    _allowed_re: re.Pattern[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_denied_re", _compile_any(self.denied))
        object.__setattr__(self, "_allowed_re", _compile_any(self.allowed))

    def is_allowed_crawler(self, user_agent: str) -> bool:
        return bool(user_agent) and self._allowed_re.search(user_agent) is not None

    def matches_denylist(self, user_agent: str) -> bool:
        return bool(user_agent) and self._denied_re.search(user_agent) is not None

    def is_bot(self, user_agent: Optional[str]) -> bool:
        """Site-wide check: only the user agent is considered; a blank one passes."""
        user_agent = user_agent or ""
        if not user_agent or self.is_allowed_crawler(user_agent):
            return False
        return self.matches_denylist(user_agent)

    def is_likely_bot(self, user_agent: Optional[str], headers: Optional[Mapping[str, str]] = None) -> bool:
        """Stricter API check that also looks at browser-like headers."""
        user_agent = user_agent or ""
        if not user_agent:
            return True
        if self.is_allowed_crawler(user_agent):
            return False
        if self.matches_denylist(user_agent):
            return True

        if headers is not None:
            lowered = {str(key).lower(): value for key, value in headers.items()}
            if not lowered.get("accept-language"):
                return True
            if not lowered.get("referer") and lowered.get("origin"):
                return True
        return False


def _compile_any(patterns: tuple[str, ...]) -> re.Pattern[str]:
    if not patterns:
        return re.compile(r"(?!x)x")
    return re.compile("|".join(re.escape(item) for item in patterns), re.IGNORECASE)


def client_identifier(request: Request, trust_forwarded: bool = False) -> str:
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
