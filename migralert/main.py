# migralert/main.py
"""
MigrAlert - community safety alerts
Main Application Entry Point
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from migralert import __version__
from migralert.api.v1 import alerts, contacts, feedback, reports
from migralert.core.config import settings
from migralert.core.database import init_db
from migralert.core.exceptions import MigrAlertError
from migralert.core.logging_config import setup_logging
from migralert.services.realtime import get_broker

load_dotenv()

logger = logging.getLogger(__name__)

# Relative to the working directory, like UPLOAD_FOLDER
STATIC_DIR = Path("static")


# ========================================
# LIFESPAN EVENT
# ========================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    os.makedirs(settings.UPLOAD_FOLDER, exist_ok=True)

    routes_api = sorted(
        f"  {', '.join(sorted(route.methods - {'HEAD', 'OPTIONS'})):12} {route.path}"
        for route in app.routes
        if getattr(route, "methods", None) and route.path.startswith(settings.API_V1_STR)
    )
    logger.info("🚀 MIGRALERT started (%s)\n%s", settings.ENVIRONMENT, "\n".join(routes_api))

    yield

    logger.info(
        "👋 MIGRALERT stopped (%d realtime subscribers open)",
        get_broker().subscriber_count(),
    )


# ========================================
# CREATE APP
# ========================================
app = FastAPI(
    title=settings.APP_NAME,
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded report photos are served from here
app.mount("/static", StaticFiles(directory=str(STATIC_DIR), check_dir=False), name="static")


# ========================================
# EXCEPTION HANDLERS
# ========================================
@app.exception_handler(MigrAlertError)
async def migralert_exception_handler(request: Request, exc: MigrAlertError):
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "message": "Invalid request data",
            "retryable": False,
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"❌ Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
        },
    )


# ========================================
# ROUTERS API (prefix /api/v1)
# ========================================
app.include_router(reports.router, prefix=settings.API_V1_STR)
app.include_router(contacts.router, prefix=settings.API_V1_STR)
app.include_router(alerts.router, prefix=settings.API_V1_STR)
app.include_router(feedback.router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health():
    return {"status": "healthy", "app": "migralert", "version": __version__}
