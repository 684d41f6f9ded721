"""
Proofreading phase: review a completed translation against its source and
rewrite it.

Two dependent model calls:
    1. propose - ask for a JSON list of {original, changes, reason}
    2. apply   - replay step 1 as conversation history and ask for the
                 corrected translation only
"""

import time
from typing import Optional

from ai_providers import Conversation, GenerationGateway, GenerationResult, ModelSpec
from config.logging_config import get_logger, log_context

from .errors import EmptyGenerationError
from .json_extract import extract_json_array, parse_proposed_changes
from .output_record import OutputRecord, ProofreadStatus
from .prompts import (
    APPLY_CHANGES_REQUEST,
    DEFAULT_PROOFREADING_INSTRUCTION,
    propose_changes_prompt,
)
from .store import ResilientStore

logger = get_logger(__name__)


def _sum_tokens(*counts: Optional[int]) -> Optional[int]:
    known = [count for count in counts if count is not None]
    return sum(known) if known else None


class ProofreadingPhase:
    """Drive Track B of one record: proof_reading -> applying_proofread -> completed | failed."""

    def __init__(self, store: ResilientStore, gateway: GenerationGateway):
        self.store = store
        self.gateway = gateway

    async def _generate(self, model: ModelSpec, instruction: str, prompt, step: str) -> GenerationResult:
        result = await self.gateway.generate(model, instruction, prompt)
        if result.is_empty:
            raise EmptyGenerationError(f"{model.model_identifier} returned an empty {step} response")
        return result

    async def run(
        self,
        record: OutputRecord,
        source_text: str,
        model: ModelSpec,
        instruction: Optional[str] = None,
    ) -> OutputRecord:
        """
        Proofread the record's translated_text.

        Returns:
            The record with proofread_status completed and the corrected text
            in translated_text.

        Raises:
            InvalidTransitionError: the translation is not completed.
            RecordSupersededError: a newer run replaced the record.
            GenerationError, EmptyGenerationError: a model call failed; the
                record is marked failed first.
        """
        ctx = log_context(record.translation_id, record.language_code)
        instruction = instruction or DEFAULT_PROOFREADING_INSTRUCTION
        translated_text = record.translated_text

        record = await self.store.transition(
            record,
            record.plan_transition(
                proofread_status=ProofreadStatus.PROOF_READING,
                proofread_original_translation=translated_text,
            ),
        )

        logger.info(f"{ctx} Proofreading {record.language_name} with {model.model_identifier}")
        start_time = time.monotonic()

        try:
            # Step 1: propose
            step1_prompt = propose_changes_prompt(record.language_name, source_text, translated_text)
            proposal = await self._generate(model, instruction, step1_prompt, "proposal")
            proposal_text = extract_json_array(proposal.text)

            record = await self.store.transition(
                record,
                record.plan_transition(
                    proofread_status=ProofreadStatus.APPLYING_PROOFREAD,
                    proofread_proposed_changes=parse_proposed_changes(proposal.text),
                ),
            )
            logger.debug(f"{ctx} Proposal stored ({len(proposal_text)} chars)")

            # Step 2: apply
            conversation = (
                Conversation()
                .user(step1_prompt)
                .assistant(proposal_text)
                .user(APPLY_CHANGES_REQUEST)
            )
            final = await self._generate(model, instruction, conversation, "proofread")
        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.error(f"{ctx} Proofreading failed after {elapsed:.0f}s: {e}")
            await self.store.transition(
                record,
                record.plan_transition(
                    proofread_status=ProofreadStatus.FAILED,
                    error_message=str(e) or type(e).__name__,
                ),
            )
            raise

        record = await self.store.transition(
            record,
            record.plan_transition(
                proofread_status=ProofreadStatus.COMPLETED,
                translated_text=final.text,
                proofread_duration_ms=proposal.duration_ms + final.duration_ms,
                proofread_output_tokens=_sum_tokens(proposal.output_tokens, final.output_tokens),
            ),
        )

        logger.info(
            f"{ctx} Proofread {record.language_name}, "
            f"time: {(proposal.duration_ms + final.duration_ms) / 1000:.0f}s"
        )
        return record
