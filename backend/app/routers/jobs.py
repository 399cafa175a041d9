from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..guards import enforce_api_rate_limit
from ..schemas import ExtractJobRequest, ExtractJobResponse
from ..security import sanitize_input
from ..services.gemini_service import (
    GeminiConfigurationError,
    GeminiServiceError,
    GeminiServiceTimeoutError,
)
from ..services.job_extractor import JobFetchError, extract_job_description

router = APIRouter(prefix="/api", tags=["jobs"])
logger = logging.getLogger("cvtailor.jobs")


@router.post(
    "/extract-job",
    response_model=ExtractJobResponse,
    dependencies=[Depends(enforce_api_rate_limit)],
    responses={
        400: {"description": "The job posting URL could not be fetched"},
        500: {"description": "No job information could be extracted"},
        503: {"description": "AI service misconfigured"},
        504: {"description": "AI request timed out"},
    },
)
async def extract_job(payload: ExtractJobRequest) -> ExtractJobResponse:
    """Fetch a job posting page and turn it into a job description."""

    url = str(payload.url)
    try:
        description = await extract_job_description(url)
    except JobFetchError as exc:
        raise HTTPException(status_code=400, detail=sanitize_input(str(exc))) from exc
    except GeminiServiceTimeoutError as exc:
        raise HTTPException(status_code=504, detail="Job extraction timed out") from exc
    except GeminiConfigurationError as exc:
        logger.error(
            "AI service configuration error",
            extra={
                "event": "ai_configuration_error",
                "reason": str(exc),
                "path": "/api/extract-job",
            },
        )
        raise HTTPException(status_code=503, detail="AI service is not configured") from exc
    except GeminiServiceError as exc:
        logger.exception(
            "Job extraction failed",
            extra={
                "event": "job_extraction_failed",
                "path": "/api/extract-job",
            },
        )
        raise HTTPException(status_code=500, detail="Failed to extract job information") from exc

    return ExtractJobResponse(job_description=description, url=url)
