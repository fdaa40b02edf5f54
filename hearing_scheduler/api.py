"""
Hearing Scheduler API
=====================

FastAPI application for the hearing scheduling conflict engine.

Endpoints (see api_hearings.py):
- POST /api/v1/hearings/check-conflict
- POST /api/v1/hearings, PUT/DELETE/GET /api/v1/hearings/{hearing_id}
- GET  /api/v1/hearings, /api/v1/hearings/today, /api/v1/hearings/case/{case_id}
- POST /api/v1/cases, GET /api/v1/cases/{case_id}
- POST /api/v1/cases/{case_id}/next-hearing/recompute
- GET  /health

Errors are returned as {"error": CODE, "message": ..., ...} with CODE one of
VALIDATION_ERROR, CONFLICT, INTERNAL_ERROR, NOT_FOUND, FORBIDDEN, UNAUTHORIZED.

Run with:
    uvicorn hearing_scheduler.api:app --host 0.0.0.0 --port 8000
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api_hearings import router as hearings_router
from .clock import utc_now
from .config import get_settings
from .db.session import init_db
from .errors import SchedulingError
from .schemas import HealthResponse

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Hearing Scheduler",
    description="Conflict-checked hearing scheduling with audited overrides",
    version=get_settings().service_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

CORS_ALLOW_ORIGINS = get_settings().cors_origins()
logger.info(f"CORS allow origins: {CORS_ALLOW_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(hearings_router, prefix="/api/v1")


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        timestamp=utc_now(),
    )


# =============================================================================
# Startup
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    settings = get_settings()
    logger.info(f"Starting Hearing Scheduler v{settings.service_version}")
    logger.info(
        "Defaults: timezone=%s time=%s duration=%dmin, propagation=%s",
        settings.default_timezone,
        settings.default_hearing_time,
        settings.default_duration_minutes,
        settings.propagation_mode.value,
    )
    for warning in settings.validate_config():
        logger.warning(f"Config: {warning}")

    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


# =============================================================================
# Error Handlers
# =============================================================================

def _error_code_for_status(status_code: int) -> str:
    return {
        400: "VALIDATION_ERROR",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
    }.get(status_code, "INTERNAL_ERROR")


def _build_error_payload(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": code, "message": message}
    if details:
        payload["details"] = details
    return payload


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Scheduling errors carry their own code and payload (conflicts included)."""
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
async def api_http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_payload(_error_code_for_status(exc.status_code), message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def api_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return structured validation errors without leaking inputs."""
    sanitized_errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_build_error_payload("VALIDATION_ERROR", "Invalid request", {"errors": sanitized_errors}),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.exception("Unhandled exception on %s: %s", request.url.path, exc.__class__.__name__)
    return JSONResponse(
        status_code=500,
        content=_build_error_payload("INTERNAL_ERROR", "Internal server error"),
    )


# =============================================================================
# Main (for direct execution)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hearing_scheduler.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
