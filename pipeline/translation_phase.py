"""
Translation phase: source text -> target-language text for one output record.
"""

import time
from typing import Optional

from ai_providers import GenerationGateway, ModelSpec
from config.logging_config import get_logger, log_context

from .errors import EmptyGenerationError
from .output_record import OutputRecord, TranslationStatus
from .prompts import DEFAULT_TRANSLATION_INSTRUCTION, translation_prompt
from .store import ResilientStore

logger = get_logger(__name__)


class TranslationPhase:
    """
    Drive Track A of one record: translating -> completed | failed.

    Generation is attempted once. Failures are recorded on the record and
    re-raised to the caller.
    """

    def __init__(self, store: ResilientStore, gateway: GenerationGateway):
        self.store = store
        self.gateway = gateway

    async def run(
        self,
        record: OutputRecord,
        source_text: str,
        model: ModelSpec,
        instruction: Optional[str] = None,
    ) -> OutputRecord:
        """
        Translate `source_text` into the record's language.

        Returns:
            The record with translation_status completed and translated_text set.

        Raises:
            RecordSupersededError: a newer run replaced the record.
            GenerationError, EmptyGenerationError: the model call failed; the
                record is marked failed first.
        """
        ctx = log_context(record.translation_id, record.language_code)

        if record.translation_status != TranslationStatus.TRANSLATING:
            record = await self.store.transition(
                record, record.plan_transition(translation_status=TranslationStatus.TRANSLATING)
            )

        logger.info(f"{ctx} Translating into {record.language_name} with {model.model_identifier}")
        start_time = time.monotonic()

        try:
            result = await self.gateway.generate(
                model,
                instruction or DEFAULT_TRANSLATION_INSTRUCTION,
                translation_prompt(record.language_name, source_text),
            )
            if result.is_empty:
                raise EmptyGenerationError(f"{model.model_identifier} returned an empty translation")
        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.error(f"{ctx} Translation failed after {elapsed:.0f}s: {e}")
            await self.store.transition(
                record,
                record.plan_transition(
                    translation_status=TranslationStatus.FAILED,
                    error_message=str(e) or type(e).__name__,
                ),
            )
            raise

        record = await self.store.transition(
            record,
            record.plan_transition(
                translation_status=TranslationStatus.COMPLETED,
                translated_text=result.text,
                translation_duration_ms=result.duration_ms,
                translation_output_tokens=result.output_tokens,
            ),
        )

        logger.info(
            f"{ctx} Translated into {record.language_name}, "
            f"time: {result.duration_ms / 1000:.0f}s, tokens: {result.output_tokens}"
        )
        return record
