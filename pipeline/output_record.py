"""
Output Record - persisted unit of work for one (translation, language) pair.

Status is two independent enums, causally ordered:

    translation:  pending -> translating -> completed | failed
    proofread:    pending -> proof_reading -> applying_proofread -> completed | failed
                  pending -> skipped

The proofread track may only leave pending once translation is completed.
Terminal states never change; a new run replaces the whole record.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

from .errors import InvalidTransitionError


class TranslationStatus(str, Enum):
    """Track A"""
    PENDING = "pending"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    FAILED = "failed"


class ProofreadStatus(str, Enum):
    """Track B, gated on Track A = completed"""
    PENDING = "pending"
    PROOF_READING = "proof_reading"
    APPLYING_PROOFREAD = "applying_proofread"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


TRANSLATION_TRANSITIONS: Mapping[TranslationStatus, FrozenSet[TranslationStatus]] = {
    TranslationStatus.PENDING: frozenset({TranslationStatus.TRANSLATING, TranslationStatus.FAILED}),
    TranslationStatus.TRANSLATING: frozenset({TranslationStatus.COMPLETED, TranslationStatus.FAILED}),
    TranslationStatus.COMPLETED: frozenset(),
    TranslationStatus.FAILED: frozenset(),
}

PROOFREAD_TRANSITIONS: Mapping[ProofreadStatus, FrozenSet[ProofreadStatus]] = {
    ProofreadStatus.PENDING: frozenset({ProofreadStatus.PROOF_READING, ProofreadStatus.SKIPPED}),
    ProofreadStatus.PROOF_READING: frozenset({ProofreadStatus.APPLYING_PROOFREAD, ProofreadStatus.FAILED}),
    ProofreadStatus.APPLYING_PROOFREAD: frozenset({ProofreadStatus.COMPLETED, ProofreadStatus.FAILED}),
    ProofreadStatus.COMPLETED: frozenset(),
    ProofreadStatus.FAILED: frozenset(),
    ProofreadStatus.SKIPPED: frozenset(),
}

ACTIVE_TRANSLATION_STATUSES = frozenset({TranslationStatus.TRANSLATING})
ACTIVE_PROOFREAD_STATUSES = frozenset({
    ProofreadStatus.PROOF_READING,
    ProofreadStatus.APPLYING_PROOFREAD,
})

# Proposal is either the parsed list of {original, changes, reason} objects,
# or the raw model text when nothing parseable was found.
ProposedChanges = Union[List[Dict[str, Any]], str]

# Columns a transition may set alongside the status fields
MUTABLE_FIELDS = frozenset({
    "translated_text",
    "proofread_proposed_changes",
    "proofread_original_translation",
    "translation_duration_ms",
    "translation_output_tokens",
    "proofread_duration_ms",
    "proofread_output_tokens",
    "error_message",
})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class OutputRecord:
    """One target language of one translation."""
    id: str
    translation_id: str
    language_code: str
    language_name: str
    model_id: Optional[str] = None

    translated_text: Optional[str] = None
    proofread_proposed_changes: Optional[ProposedChanges] = None
    proofread_original_translation: Optional[str] = None

    translation_status: TranslationStatus = TranslationStatus.PENDING
    proofread_status: ProofreadStatus = ProofreadStatus.PENDING

    translation_duration_ms: Optional[int] = None
    translation_output_tokens: Optional[int] = None
    proofread_duration_ms: Optional[int] = None
    proofread_output_tokens: Optional[int] = None

    error_message: Optional[str] = None

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_translation_terminal(self) -> bool:
        return not TRANSLATION_TRANSITIONS[self.translation_status]

    @property
    def is_proofread_terminal(self) -> bool:
        return not PROOFREAD_TRANSITIONS[self.proofread_status]

    @property
    def is_terminal(self) -> bool:
        """
        Nothing more will happen to this record without a rerun.

        A failed translation ends the run even though proofreading is still
        pending, because proofreading can never start.
        """
        if self.translation_status == TranslationStatus.FAILED:
            return True
        return self.is_translation_terminal and self.is_proofread_terminal

    @property
    def is_active(self) -> bool:
        return (
            self.translation_status in ACTIVE_TRANSLATION_STATUSES
            or self.proofread_status in ACTIVE_PROOFREAD_STATUSES
        )

    def plan_transition(
        self,
        translation_status: Optional[TranslationStatus] = None,
        proofread_status: Optional[ProofreadStatus] = None,
        **fields: Any,
    ) -> "TransitionPlan":
        """
        Validate a status change and return what to write.

        The plan carries the statuses the record is expected to have in the
        store, so the write only lands if nothing else moved it meanwhile.

        Raises:
            InvalidTransitionError: the move is not allowed from the current state.
        """
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown output fields: {sorted(unknown)}")

        new_translation = self.translation_status
        if translation_status is not None:
            check_translation_transition(self.translation_status, translation_status)
            new_translation = translation_status

        if proofread_status is not None:
            check_proofread_transition(self.proofread_status, proofread_status, new_translation)

        text = fields.get("translated_text", self.translated_text)
        if new_translation == TranslationStatus.COMPLETED and text is None:
            raise InvalidTransitionError(
                "translation", self.translation_status.value, new_translation.value,
                "completed translation requires translated_text",
            )
        if new_translation != TranslationStatus.COMPLETED and text is not None:
            raise InvalidTransitionError(
                "translation", self.translation_status.value, new_translation.value,
                "translated_text may only be set on a completed translation",
            )

        if proofread_status == ProofreadStatus.APPLYING_PROOFREAD:
            proposal = fields.get("proofread_proposed_changes", self.proofread_proposed_changes)
            if proposal is None:
                raise InvalidTransitionError(
                    "proofread", self.proofread_status.value, proofread_status.value,
                    "proposal must be stored before applying it",
                )

        changes: Dict[str, Any] = dict(fields)
        if translation_status is not None:
            changes["translation_status"] = translation_status
        if proofread_status is not None:
            changes["proofread_status"] = proofread_status

        return TransitionPlan(
            output_id=self.id,
            expected_translation_status=self.translation_status,
            expected_proofread_status=self.proofread_status,
            changes=changes,
        )

    def apply(self, plan: "TransitionPlan", updated_at: Optional[datetime] = None) -> "OutputRecord":
        """Return a copy of this record with the plan's changes applied."""
        return replace(self, **plan.changes, updated_at=updated_at or utc_now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "translation_id": self.translation_id,
            "language_code": self.language_code,
            "language_name": self.language_name,
            "model_id": self.model_id,
            "translated_text": self.translated_text,
            "proofread_proposed_changes": self.proofread_proposed_changes,
            "proofread_original_translation": self.proofread_original_translation,
            "translation_status": self.translation_status.value,
            "proofread_status": self.proofread_status.value,
            "translation_duration_ms": self.translation_duration_ms,
            "translation_output_tokens": self.translation_output_tokens,
            "proofread_duration_ms": self.proofread_duration_ms,
            "proofread_output_tokens": self.proofread_output_tokens,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class TransitionPlan:
    """A validated change to one output record."""
    output_id: str
    expected_translation_status: TranslationStatus
    expected_proofread_status: ProofreadStatus
    changes: Dict[str, Any]


def check_translation_transition(current: TranslationStatus, target: TranslationStatus) -> None:
    if target not in TRANSLATION_TRANSITIONS[current]:
        raise InvalidTransitionError("translation", current.value, target.value)


def check_proofread_transition(
    current: ProofreadStatus,
    target: ProofreadStatus,
    translation_status: TranslationStatus,
) -> None:
    if translation_status != TranslationStatus.COMPLETED:
        raise InvalidTransitionError(
            "proofread", current.value, target.value,
            f"translation is {translation_status.value}, not completed",
        )
    if target not in PROOFREAD_TRANSITIONS[current]:
        raise InvalidTransitionError("proofread", current.value, target.value)
