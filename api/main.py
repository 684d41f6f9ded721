#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FastAPI Web Server - REST API for the Babellion translation pipeline.

Provides:
- Source document management
- Fan-out translation + proofreading runs, one background task per language
- Output status for polling clients
- Model and language catalogues

Usage:
    # Start server
    uvicorn api.main:app --host 0.0.0.0 --port 8000

    # Or run directly
    python -m api.main

API Documentation:
    - OpenAPI docs: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc

Key Endpoints:
    POST /api/translations - Create a source document
    POST /api/translate - Translate into several languages (202)
    POST /api/translate-single - Run or rerun one language (202)
    GET /api/translations/{id}/outputs - Poll per-language status
    PATCH /api/translation-outputs/{id} - Edit a completed translation

Configuration:
    Environment variables:
    - RATE_LIMIT: API rate limit (default: "60/minute")
    - OPENAI_API_KEY: OpenAI API key
    - ANTHROPIC_API_KEY: Anthropic API key
    - DATABASE_PATH: SQLite file (default: data/babellion.db)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from pathlib import Path
import sys

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging_config import get_logger
from config.settings import settings
from pipeline import NotFoundError, OutputNotEditableError, InvalidTransitionError

from api.routes import router, limiter, API_VERSION
from api.service import get_translation_service

logger = get_logger(__name__)


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Babellion Translation API",
    description="Per-language translation and proofreading pipeline",
    version=API_VERSION
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(NotFoundError)
def not_found_exception_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(OutputNotEditableError)
@app.exception_handler(InvalidTransitionError)
def conflict_exception_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ValueError)
def value_error_exception_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# CORS middleware - Restricted to allowed origins
ALLOWED_ORIGINS = [
    "http://localhost:5000",
    "http://127.0.0.1:5000",
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

app.include_router(router)


@app.on_event("startup")
async def startup_service():
    """Seed reference data and bring up the translation service."""
    service = get_translation_service()
    await service.startup(seed=settings.seed_on_startup)


@app.on_event("shutdown")
async def shutdown_service():
    """Wait for in-flight language runs."""
    await get_translation_service().shutdown()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Babellion API Server...")
    logger.info("API Documentation: http://localhost:8000/docs")

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
