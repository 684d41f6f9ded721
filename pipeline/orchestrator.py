"""
Fan-out orchestrator: one translation, many target languages.

Each requested language gets a fresh output record (replacing any earlier
one) and its own task running translation then proofreading. Languages run
concurrently and fail independently; callers observe outcomes only through
the store.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from ai_providers import GenerationGateway, ModelSpec
from config.constants import PROOFREADING_PROMPT_SETTING, TRANSLATION_PROMPT_SETTING
from config.logging_config import get_logger, log_context

from .errors import NotFoundError, RecordSupersededError
from .output_record import OutputRecord, ProofreadStatus, TranslationStatus
from .proofreading_phase import ProofreadingPhase
from .repository import new_id
from .store import ResilientStore
from .translation_phase import TranslationPhase

logger = get_logger(__name__)


@dataclass
class PreparedRun:
    """Everything a language task needs, resolved up front."""
    translation: Dict[str, Any]
    model: Dict[str, Any]
    languages: List[Dict[str, Any]]
    proofread: bool = True
    translation_instruction: Optional[str] = None
    proofreading_instruction: Optional[str] = None

    @property
    def model_spec(self) -> ModelSpec:
        return ModelSpec(self.model["provider"], self.model["model_identifier"])

    @property
    def source_text(self) -> str:
        return self.translation["source_text"]


@dataclass
class LanguageOutcome:
    language_code: str
    record: Optional[OutputRecord] = None
    error: Optional[BaseException] = None
    superseded: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.superseded


def _unique(codes: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    ordered = []
    for code in codes:
        if code not in seen:
            seen.add(code)
            ordered.append(code)
    return ordered


class TranslationOrchestrator:
    """
    Starts and tracks per-language pipelines.

    Usage:
        orchestrator = TranslationOrchestrator(store, gateway)
        records = await orchestrator.start(translation_id, ["fr", "de"])
        # ... later, or on shutdown
        await orchestrator.wait_idle()
    """

    def __init__(self, store: ResilientStore, gateway: GenerationGateway):
        self.store = store
        self.translation_phase = TranslationPhase(store, gateway)
        self.proofreading_phase = ProofreadingPhase(store, gateway)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_runs(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def prepare(
        self,
        translation_id: str,
        language_codes: Iterable[str],
        model_id: Optional[str] = None,
        proofread: bool = True,
    ) -> PreparedRun:
        """
        Resolve and validate a run request.

        Raises:
            ValueError: no languages requested.
            NotFoundError: unknown translation, model or language.
        """
        codes = _unique(language_codes)
        if not codes:
            raise ValueError("At least one target language is required")

        translation = await self.store.require_translation(translation_id)

        if model_id:
            model = await self.store.get_model(model_id)
            if model is None or not model["is_active"]:
                raise NotFoundError("Model", model_id)
        else:
            model = await self.store.get_default_model()
            if model is None:
                raise NotFoundError("Model", "default")

        found = {language["code"]: language for language in await self.store.get_languages(codes)}
        missing = [code for code in codes if code not in found]
        if missing:
            raise NotFoundError("Language", ", ".join(missing))

        return PreparedRun(
            translation=translation,
            model=model,
            languages=[found[code] for code in codes],
            proofread=proofread,
            translation_instruction=await self.store.get_setting(TRANSLATION_PROMPT_SETTING),
            proofreading_instruction=await self.store.get_setting(PROOFREADING_PROMPT_SETTING),
        )

    async def create_records(self, run: PreparedRun) -> List[OutputRecord]:
        """Replace the output record of every language with a fresh translating one."""
        records = []
        for language in run.languages:
            record = OutputRecord(
                id=new_id(),
                translation_id=run.translation["id"],
                language_code=language["code"],
                language_name=language["name"],
                model_id=run.model["id"],
                translation_status=TranslationStatus.TRANSLATING,
            )
            records.append(await self.store.replace_output(record))
        return records

    async def start(
        self,
        translation_id: str,
        language_codes: Iterable[str],
        model_id: Optional[str] = None,
        proofread: bool = True,
    ) -> List[OutputRecord]:
        """
        Validate, replace the records, and launch the run in the background.

        Returns the freshly created records; their progress is visible only
        through the store.
        """
        run = await self.prepare(translation_id, language_codes, model_id, proofread)
        records = await self.create_records(run)

        task = asyncio.create_task(self.run_languages(run, records))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            f"[{translation_id}] Started {len(records)} language(s) "
            f"with {run.model['model_identifier']}: {', '.join(r.language_code for r in records)}"
        )
        return records

    async def run(
        self,
        translation_id: str,
        language_codes: Iterable[str],
        model_id: Optional[str] = None,
        proofread: bool = True,
    ) -> List[LanguageOutcome]:
        """Same as start(), but wait for every language to finish."""
        run = await self.prepare(translation_id, language_codes, model_id, proofread)
        records = await self.create_records(run)
        return await self.run_languages(run, records)

    async def run_languages(self, run: PreparedRun, records: List[OutputRecord]) -> List[LanguageOutcome]:
        """Run every record concurrently; one failure never cancels the others."""
        results = await asyncio.gather(
            *(self._run_language(run, record) for record in records),
            return_exceptions=True,
        )

        outcomes = []
        for record, result in zip(records, results):
            ctx = log_context(record.translation_id, record.language_code)
            if isinstance(result, LanguageOutcome):
                outcomes.append(result)
            elif isinstance(result, Exception):
                logger.error(f"{ctx} Language run failed: {result}")
                outcomes.append(LanguageOutcome(record.language_code, error=result))
            else:
                # CancelledError and friends
                raise result

        succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
        logger.info(
            f"[{run.translation['id']}] Run finished: {succeeded}/{len(outcomes)} language(s) succeeded"
        )
        return outcomes

    async def _run_language(self, run: PreparedRun, record: OutputRecord) -> LanguageOutcome:
        ctx = log_context(record.translation_id, record.language_code)
        try:
            record = await self.translation_phase.run(
                record, run.source_text, run.model_spec, run.translation_instruction
            )

            if run.proofread:
                record = await self.proofreading_phase.run(
                    record, run.source_text, run.model_spec, run.proofreading_instruction
                )
            else:
                record = await self.store.transition(
                    record, record.plan_transition(proofread_status=ProofreadStatus.SKIPPED)
                )
        except RecordSupersededError:
            logger.info(f"{ctx} Record was replaced by a newer run, stopping")
            return LanguageOutcome(record.language_code, record=record, superseded=True)

        return LanguageOutcome(record.language_code, record=record)

    async def wait_idle(self) -> None:
        """Wait for every background run started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
