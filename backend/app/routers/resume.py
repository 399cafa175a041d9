from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ..config import settings
from ..guards import enforce_api_rate_limit
from ..schemas import ResumeParseResponse
from ..services.pdf_text import ResumeParseError, extract_pdf_text

router = APIRouter(prefix="/api/resume", tags=["resume"], dependencies=[Depends(enforce_api_rate_limit)])


@router.post("/parse", response_model=ResumeParseResponse)
async def parse_resume(file: UploadFile = File(...)) -> ResumeParseResponse:
    content = await file.read(settings.resume_upload_max_bytes + 1)
    if len(content) > settings.resume_upload_max_bytes:
        raise HTTPException(status_code=413, detail="Resume file is too large")

    try:
        parsed = extract_pdf_text(content)
    except ResumeParseError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return ResumeParseResponse(text=parsed.text, num_pages=parsed.num_pages, info=parsed.info)
