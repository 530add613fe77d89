from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import logging
import traceback
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException

from legalrelay import __version__
from legalrelay.config import get_settings
from legalrelay.deps import get_temp_files
from legalrelay.errors import RelayError
from legalrelay.routes.analyze import router as analyze_router
from legalrelay.routes.health import router as health_router
from legalrelay.routes.questions import router as questions_router
from legalrelay.routes.speech import router as speech_router
from legalrelay.routes.user_data import router as user_data_router
from legalrelay.tempfiles import run_periodic_sweep

# ------------------------------------------------------------------------------
# App metadata
# ------------------------------------------------------------------------------

settings = get_settings()

APP_NAME = settings.app_name
APP_VERSION = __version__
APP_DESCRIPTION = "Analyze legal documents with an LLM, answer follow-up questions and read text aloud."

logger = logging.getLogger("legalrelay")
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))


# ------------------------------------------------------------------------------
# Lifespan
# ------------------------------------------------------------------------------

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    temp_files = get_temp_files()
    sweeper = asyncio.create_task(
        run_periodic_sweep(
            temp_files,
            settings.temp_sweep_interval_seconds,
            settings.temp_max_age_seconds,
        )
    )
    logger.info("%s %s started (env=%s)", APP_NAME, APP_VERSION, settings.environment)
    if not settings.openai_configured:
        logger.warning("OPENAI_API_KEY is not set")
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        temp_files.purge()
        logger.info("Shutting down gracefully")


# ------------------------------------------------------------------------------
# FastAPI app
# ------------------------------------------------------------------------------

app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    description=APP_DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------------------------
# Error rendering
# ------------------------------------------------------------------------------

def _error_body(error: str, message: str, exc: Optional[BaseException] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "error": error,
        "message": message,
        "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
    }
    if exc is not None and get_settings().debug:
        body["details"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, exc.error, exc.message)
        body = _error_body(exc.error, exc.message, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
        body = _error_body(exc.error, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content=_error_body("Invalid request", problems))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "Something went wrong", exc),
    )


# ------------------------------------------------------------------------------
# Root & favicon
# ------------------------------------------------------------------------------

@app.get("/")
def root():
    """
    Reports basic info and the available routes.
    """
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "routes": [
            "/api/health",
            "/api/analyze-document",
            "/api/ask-question",
            "/api/ask-question-stream",
            "/api/text-to-speech",
            "/api/save-user-data",
            "/api/get-user-data/{email}",
            "/api/delete-user-data/{email}/{serial}",
        ],
    }


@app.get("/favicon.ico")
def favicon():
    return Response(status_code=204)


# ------------------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------------------

app.include_router(health_router)
app.include_router(analyze_router)
app.include_router(questions_router)
app.include_router(speech_router)
app.include_router(user_data_router)


if __name__ == "__main__":
    uvicorn.run("legalrelay.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
