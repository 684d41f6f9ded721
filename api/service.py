"""
Translation Service - glue between the HTTP routes and the pipeline.

Owns the store, the generation gateway and the orchestrator for the process.
"""

from typing import Any, Dict, List, Optional

from ai_providers import GenerationGateway, create_generation_gateway
from config.logging_config import get_logger
from pipeline import (
    NotFoundError,
    OutputNotEditableError,
    OutputRecord,
    OutputRepository,
    ResilientStore,
    TranslationOrchestrator,
)

logger = get_logger(__name__)


class TranslationService:
    """Document, output and run management for the API."""

    def __init__(self, store: ResilientStore, gateway: GenerationGateway):
        self.store = store
        self.gateway = gateway
        self.orchestrator = TranslationOrchestrator(store, gateway)

    # ========== Lifecycle ==========

    async def startup(self, seed: bool = True) -> None:
        if seed:
            await self.store.seed_defaults()
        providers = [info.type.value for info in self.gateway.get_available_providers()]
        logger.info(f"Translation service ready, providers: {providers or 'none configured'}")

    async def shutdown(self) -> None:
        """Let in-flight runs finish before the process exits."""
        if self.orchestrator.active_runs:
            logger.info(f"Waiting for {self.orchestrator.active_runs} run(s) to finish")
        await self.orchestrator.wait_idle()

    # ========== Documents ==========

    async def create_translation(self, title: str, source_text: str) -> Dict[str, Any]:
        translation = await self.store.create_translation(title, source_text)
        logger.info(f"[{translation['id']}] Translation created ({len(source_text)} chars)")
        return translation

    async def get_translation(self, translation_id: str) -> Dict[str, Any]:
        return await self.store.require_translation(translation_id)

    async def delete_translation(self, translation_id: str) -> None:
        if not await self.store.delete_translation(translation_id):
            raise NotFoundError("Translation", translation_id)
        logger.info(f"[{translation_id}] Translation deleted with its outputs")

    # ========== Outputs ==========

    async def list_outputs(self, translation_id: str) -> List[OutputRecord]:
        await self.store.require_translation(translation_id)
        return await self.store.list_outputs(translation_id)

    async def update_output_text(self, output_id: str, translated_text: str) -> OutputRecord:
        record = await self.store.get_output(output_id)
        if record is None:
            raise NotFoundError("Output", output_id)
        if not await self.store.update_output_text(output_id, translated_text):
            raise OutputNotEditableError(output_id)
        return await self.store.get_output(output_id)

    # ========== Runs ==========

    async def start_translation(
        self,
        translation_id: str,
        language_codes: List[str],
        model_id: Optional[str] = None,
        proofread: bool = True,
    ) -> List[OutputRecord]:
        return await self.orchestrator.start(translation_id, language_codes, model_id, proofread)

    # ========== Reference data ==========

    async def list_models(self) -> List[Dict[str, Any]]:
        return await self.store.list_models()

    async def list_languages(self) -> List[Dict[str, Any]]:
        return await self.store.list_languages()

    def available_providers(self) -> List[str]:
        return [info.type.value for info in self.gateway.get_available_providers()]


# Singleton instance
_service: Optional[TranslationService] = None


def get_translation_service() -> TranslationService:
    """Get or create the translation service singleton."""
    global _service
    if _service is None:
        from config.settings import settings

        store = ResilientStore(
            OutputRepository(settings.database_path),
            max_attempts=settings.store_retry_max_attempts,
            delays=settings.store_retry_delays,
            add_jitter=settings.store_retry_jitter,
        )
        _service = TranslationService(store, create_generation_gateway(settings))
    return _service


def reset_translation_service() -> None:
    """Drop the singleton (useful for testing)"""
    global _service
    _service = None
