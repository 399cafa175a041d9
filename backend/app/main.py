from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.cors import CORSMiddleware

from .config import settings
from .guards import build_api_gate, build_site_gate, build_sweepers
from .logging_utils import configure_logging
from .metrics import CONTENT_TYPE_LATEST, REQUESTS_TOTAL, generate_latest
from .routers.download import router as download_router
from .routers.generate import router as generate_router
from .routers.jobs import router as jobs_router
from .routers.resume import router as resume_router
from .security import SECURITY_HEADERS, client_identifier

configure_logging()
logger = logging.getLogger("cvtailor.app")

app = FastAPI(title="CV Tailor API", version="1.0.0")
api_router = APIRouter(prefix="/api")

app.state.site_gate = build_site_gate()
app.state.api_gate = build_api_gate()
app.state.sweepers = build_sweepers(app.state.site_gate, app.state.api_gate)


@app.on_event("startup")
async def startup_event() -> None:
    for sweeper in app.state.sweepers:
        sweeper.start()
    logger.info(
        "Backend startup complete",
        extra={"event": "startup", "reason": settings.env},
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    for sweeper in app.state.sweepers:
        await sweeper.stop()


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_guard_middleware(request: Request, call_next):
    path = request.url.path
    method = request.method
    ip = client_identifier(request)

    outcome = request.app.state.site_gate.check(ip, request.headers, path)
    if outcome.forwarded:
        response = await call_next(request)
        for name, value in outcome.headers.items():
            response.headers.setdefault(name, value)
    else:
        response = JSONResponse(status_code=outcome.status_code, content=outcome.error_body(), headers=outcome.headers)

    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    REQUESTS_TOTAL.labels(method=method, path=path, status=str(response.status_code)).inc()
    return response


@api_router.get("/health")
async def api_healthcheck() -> dict[str, str]:
    return {"status": "ok", "ts": datetime.now(timezone.utc).isoformat()}


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok", "ts": datetime.now(timezone.utc).isoformat()}


@app.get("/metrics")
async def metrics() -> Response:
    if not settings.enable_prometheus_metrics:
        raise HTTPException(status_code=404, detail="Metrics disabled")
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(generate_router)
app.include_router(jobs_router)
app.include_router(resume_router)
app.include_router(download_router)
app.include_router(api_router)
