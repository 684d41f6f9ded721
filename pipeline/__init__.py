"""
Babellion Pipeline - per-language translate-then-proofread runs.

Usage:
    from pipeline import OutputRepository, ResilientStore, TranslationOrchestrator
    from ai_providers import create_generation_gateway

    store = ResilientStore(OutputRepository("data/babellion.db"))
    orchestrator = TranslationOrchestrator(store, create_generation_gateway())
    records = await orchestrator.start(translation_id, ["fr", "de", "ja"])
"""

from .errors import (
    PipelineError,
    NotFoundError,
    InvalidTransitionError,
    RecordSupersededError,
    EmptyGenerationError,
    OutputNotEditableError,
)
from .output_record import (
    OutputRecord,
    TranslationStatus,
    ProofreadStatus,
    TransitionPlan,
    TRANSLATION_TRANSITIONS,
    PROOFREAD_TRANSITIONS,
    check_translation_transition,
    check_proofread_transition,
)
from .retry import retry_on_store_error, is_retryable_store_error, apply_jitter
from .repository import OutputRepository, get_output_repository
from .store import ResilientStore
from .json_extract import extract_json_array, parse_proposed_changes
from .translation_phase import TranslationPhase
from .proofreading_phase import ProofreadingPhase
from .orchestrator import TranslationOrchestrator, PreparedRun, LanguageOutcome
from .progress import (
    PollingSession,
    OutputPoller,
    is_active,
    is_terminal,
    is_stale,
    display_state,
)

__all__ = [
    # Errors
    "PipelineError",
    "NotFoundError",
    "InvalidTransitionError",
    "RecordSupersededError",
    "EmptyGenerationError",
    "OutputNotEditableError",

    # Output record
    "OutputRecord",
    "TranslationStatus",
    "ProofreadStatus",
    "TransitionPlan",
    "TRANSLATION_TRANSITIONS",
    "PROOFREAD_TRANSITIONS",
    "check_translation_transition",
    "check_proofread_transition",

    # Store
    "retry_on_store_error",
    "is_retryable_store_error",
    "apply_jitter",
    "OutputRepository",
    "get_output_repository",
    "ResilientStore",

    # Phases
    "extract_json_array",
    "parse_proposed_changes",
    "TranslationPhase",
    "ProofreadingPhase",
    "TranslationOrchestrator",
    "PreparedRun",
    "LanguageOutcome",

    # Polling
    "PollingSession",
    "OutputPoller",
    "is_active",
    "is_terminal",
    "is_stale",
    "display_state",
]
