from __future__ import annotations

import asyncio
import logging

import aiohttp

from ..config import settings
from . import gemini_service
from .gemini_service import GeminiServiceError

logger = logging.getLogger("cvtailor.jobs")

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)


class JobFetchError(RuntimeError):
    """Raised when the job posting page cannot be downloaded."""


async def fetch_job_page(url: str) -> str:
    timeout = aiohttp.ClientTimeout(total=settings.job_fetch_timeout)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers={"User-Agent": BROWSER_USER_AGENT}) as response:
                if response.status >= 400:
                    raise JobFetchError(f"Failed to fetch URL: {response.reason or response.status}")
                return await response.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.warning(
            "Job page fetch failed",
            extra={"event": "job_fetch_failed", "reason": exc.__class__.__name__},
        )
        raise JobFetchError("Failed to fetch URL") from exc


def build_extraction_prompt(html: str) -> str:
    return "\n".join(
        [
            "You are an expert at extracting job posting information from web pages.",
            "From the HTML below extract:",
            "1. Job title",
            "2. Company name",
            "3. Location (remote/onsite/hybrid and city/country if available)",
            "4. Required skills and qualifications",
            "5. Job responsibilities",
            "6. Company description",
            "7. Salary information (if available)",
            "8. Benefits (if available)",
            "",
            "Write them up as one detailed job description ready for resume and cover letter tailoring.",
            "",
            "HTML content:",
            html[: settings.job_html_max_chars],
        ]
    )


async def extract_job_description(url: str) -> str:
    html = await fetch_job_page(url)
    extracted = (await gemini_service.generate_text(build_extraction_prompt(html))).strip()
    if not extracted:
        raise GeminiServiceError("Failed to extract job information")
    return extracted
