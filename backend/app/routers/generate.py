from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..guards import enforce_api_rate_limit
from ..schemas import (
    AnalyzeJobRequest,
    GenerateDocumentRequest,
    GeneratedCoverLetter,
    GeneratedCV,
    SkillsAnalysis,
)
from ..services.documents import analyze_job_description, generate_cover_letter, generate_cv
from ..services.gemini_service import (
    GeminiConfigurationError,
    GeminiServiceError,
    GeminiServiceTimeoutError,
)

router = APIRouter(prefix="/api/generate", tags=["generate"], dependencies=[Depends(enforce_api_rate_limit)])
logger = logging.getLogger("cvtailor.generate")


@router.post("/cv", response_model=GeneratedCV)
async def generate_cv_route(payload: GenerateDocumentRequest) -> GeneratedCV:
    """Generate a CV tailored to the job description."""

    try:
        return await generate_cv(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GeminiServiceTimeoutError as exc:
        raise HTTPException(status_code=504, detail="CV generation timed out") from exc
    except GeminiConfigurationError as exc:
        logger.error(
            "AI service configuration error",
            extra={
                "event": "ai_configuration_error",
                "reason": str(exc),
                "path": "/api/generate/cv",
            },
        )
        raise HTTPException(status_code=503, detail="AI service is not configured") from exc
    except GeminiServiceError as exc:
        logger.exception(
            "CV generation failed",
            extra={
                "event": "cv_generation_failed",
                "path": "/api/generate/cv",
            },
        )
        raise HTTPException(status_code=502, detail="Failed to generate CV. Please try again.") from exc


@router.post("/cover-letter", response_model=GeneratedCoverLetter)
async def generate_cover_letter_route(payload: GenerateDocumentRequest) -> GeneratedCoverLetter:
    # Generation failures fall back to a generic letter inside the service.
    return await generate_cover_letter(payload)


@router.post("/analyze", response_model=SkillsAnalysis)
async def analyze_job_route(payload: AnalyzeJobRequest) -> SkillsAnalysis:
    try:
        skills = await analyze_job_description(payload.job_description)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GeminiServiceTimeoutError as exc:
        raise HTTPException(status_code=504, detail="Job description analysis timed out") from exc
    except GeminiConfigurationError as exc:
        raise HTTPException(status_code=503, detail="AI service is not configured") from exc
    except GeminiServiceError as exc:
        logger.exception(
            "Job description analysis failed",
            extra={
                "event": "job_analysis_failed",
                "path": "/api/generate/analyze",
            },
        )
        raise HTTPException(status_code=502, detail="Failed to analyze job description. Please try again.") from exc

    return SkillsAnalysis(skills=skills)
