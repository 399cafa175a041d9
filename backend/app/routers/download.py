from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse, Response

from ..schemas import DownloadCoverLetterRequest, DownloadCVRequest
from ..services.export import (
    cover_letter_to_docx,
    cover_letter_to_text,
    cv_to_docx,
    cv_to_text,
    export_filename,
)

router = APIRouter(prefix="/api/download", tags=["download"])

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _disposition(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.post("/cv")
async def download_cv(payload: DownloadCVRequest) -> Response:
    if payload.format == "txt":
        return PlainTextResponse(
            cv_to_text(payload.cv, payload.user_details),
            headers=_disposition(export_filename("cv", payload.language)),
        )
    return Response(
        cv_to_docx(payload.cv, payload.user_details),
        media_type=DOCX_MEDIA_TYPE,
        headers=_disposition(export_filename("cv", payload.language, "docx")),
    )


@router.post("/cover-letter")
async def download_cover_letter(payload: DownloadCoverLetterRequest) -> Response:
    if payload.format == "txt":
        return PlainTextResponse(
            cover_letter_to_text(payload.cover_letter, payload.user_details),
            headers=_disposition(export_filename("cover-letter", payload.language)),
        )
    return Response(
        cover_letter_to_docx(payload.cover_letter, payload.user_details),
        media_type=DOCX_MEDIA_TYPE,
        headers=_disposition(export_filename("cover-letter", payload.language, "docx")),
    )
