"""
Translation API Routes

Documents, per-language outputs, and run triggers. Triggers answer 202 as soon
as the output records exist; progress is read back by polling
GET /api/translations/{id}/outputs.
"""

from fastapi import APIRouter, Depends, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from typing import List

from config.constants import TRIGGER_RATE_LIMIT
from config.settings import settings

from .models import (
    HealthResponse,
    LanguageResponse,
    ModelResponse,
    OutputResponse,
    OutputUpdate,
    TranslateAccepted,
    TranslateRequest,
    TranslateSingleRequest,
    TranslationCreate,
    TranslationResponse,
)
from .service import TranslationService, get_translation_service

API_VERSION = "1.0.0"

# Rate limiting (configurable via RATE_LIMIT env var)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit]
)

router = APIRouter(prefix="/api", tags=["Translations"])


# =========================================
# Documents
# =========================================

@router.post("/translations", response_model=TranslationResponse, status_code=201)
async def create_translation(
    body: TranslationCreate,
    service: TranslationService = Depends(get_translation_service),
):
    """Store a source document to translate."""
    return await service.create_translation(body.title, body.source_text)


@router.get("/translations/{translation_id}", response_model=TranslationResponse)
async def get_translation(
    translation_id: str,
    service: TranslationService = Depends(get_translation_service),
):
    return await service.get_translation(translation_id)


@router.delete("/translations/{translation_id}", status_code=204)
async def delete_translation(
    translation_id: str,
    service: TranslationService = Depends(get_translation_service),
):
    """Delete a document together with all of its outputs."""
    await service.delete_translation(translation_id)
    return Response(status_code=204)


# =========================================
# Outputs
# =========================================

@router.get("/translations/{translation_id}/outputs", response_model=List[OutputResponse])
async def list_outputs(
    translation_id: str,
    service: TranslationService = Depends(get_translation_service),
):
    """
    Current state of every language of a translation.

    Clients poll this while any output is translating, proof_reading or
    applying_proofread.
    """
    records = await service.list_outputs(translation_id)
    return [OutputResponse.from_record(record) for record in records]


@router.patch("/translation-outputs/{output_id}", response_model=OutputResponse)
async def update_output(
    output_id: str,
    body: OutputUpdate,
    service: TranslationService = Depends(get_translation_service),
):
    """Replace the text of a completed translation by hand."""
    record = await service.update_output_text(output_id, body.translated_text)
    return OutputResponse.from_record(record)


# =========================================
# Run triggers
# =========================================

@router.post("/translate", response_model=TranslateAccepted, status_code=202)
@limiter.limit(TRIGGER_RATE_LIMIT)
async def translate(
    request: Request,
    body: TranslateRequest,
    service: TranslationService = Depends(get_translation_service),
):
    """
    Translate into every requested language.

    Existing outputs for those languages are replaced. Each language then
    runs translation and proofreading on its own.
    """
    records = await service.start_translation(
        body.translation_id, body.language_codes, body.model_id, body.proofread
    )
    return TranslateAccepted(
        translation_id=body.translation_id,
        outputs=[OutputResponse.from_record(record) for record in records],
    )


@router.post("/translate-single", response_model=TranslateAccepted, status_code=202)
@limiter.limit(TRIGGER_RATE_LIMIT)
async def translate_single(
    request: Request,
    body: TranslateSingleRequest,
    service: TranslationService = Depends(get_translation_service),
):
    """Run (or rerun) one language; also how a stopped output is recovered."""
    records = await service.start_translation(
        body.translation_id, [body.language_code], body.model_id, body.proofread
    )
    return TranslateAccepted(
        translation_id=body.translation_id,
        outputs=[OutputResponse.from_record(record) for record in records],
    )


# =========================================
# Reference data
# =========================================

@router.get("/models", response_model=List[ModelResponse])
async def list_models(service: TranslationService = Depends(get_translation_service)):
    return await service.list_models()


@router.get("/languages", response_model=List[LanguageResponse])
async def list_languages(service: TranslationService = Depends(get_translation_service)):
    return await service.list_languages()


@router.get("/health", response_model=HealthResponse)
async def health_check(service: TranslationService = Depends(get_translation_service)):
    """Basic health check endpoint"""
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        active_runs=service.orchestrator.active_runs,
        providers=service.available_providers(),
    )
