"""
Progress polling contract.

The server exposes output records; clients decide on their own when to keep
polling. A record that has not finished and has not been touched for
STALE_AFTER_MINUTES is treated as stopped: its task most likely died with the
process that ran it, and only a rerun will move it again.

Records may be OutputRecord instances or the dicts returned by
GET /api/translations/{id}/outputs.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

import httpx

from config.constants import POLL_INTERVAL_SECONDS, STALE_AFTER_MINUTES
from config.logging_config import get_logger

from .output_record import (
    ACTIVE_PROOFREAD_STATUSES,
    ACTIVE_TRANSLATION_STATUSES,
    OutputRecord,
    ProofreadStatus,
    TranslationStatus,
    parse_timestamp,
    utc_now,
)

logger = get_logger(__name__)

RecordLike = Union[OutputRecord, Dict[str, Any]]

STALE_AFTER = timedelta(minutes=STALE_AFTER_MINUTES)

# Display states
RUNNING = "running"
STOPPED = "stopped"
COMPLETED = "completed"
FAILED = "failed"
PENDING = "pending"


def _get(record: RecordLike, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name)


def _statuses(record: RecordLike):
    return (
        TranslationStatus(_get(record, "translation_status")),
        ProofreadStatus(_get(record, "proofread_status")),
    )


def is_active(record: RecordLike) -> bool:
    """Some phase claims to be working on the record."""
    translation, proofread = _statuses(record)
    return translation in ACTIVE_TRANSLATION_STATUSES or proofread in ACTIVE_PROOFREAD_STATUSES


def is_terminal(record: RecordLike) -> bool:
    translation, proofread = _statuses(record)
    if translation == TranslationStatus.FAILED:
        return True
    return translation == TranslationStatus.COMPLETED and proofread in (
        ProofreadStatus.COMPLETED,
        ProofreadStatus.FAILED,
        ProofreadStatus.SKIPPED,
    )


def is_stale(
    record: RecordLike,
    now: Optional[datetime] = None,
    stale_after: timedelta = STALE_AFTER,
) -> bool:
    """Not finished, and not updated within `stale_after`."""
    if is_terminal(record):
        return False
    updated_at = parse_timestamp(_get(record, "updated_at"))
    if updated_at is None:
        return False
    return (now or utc_now()) - updated_at > stale_after


def display_state(
    record: RecordLike,
    now: Optional[datetime] = None,
    stopped_ids: Iterable[str] = (),
    stale_after: timedelta = STALE_AFTER,
) -> str:
    """One of running, stopped, completed, failed, pending."""
    translation, proofread = _statuses(record)

    if not is_terminal(record):
        if _get(record, "id") in set(stopped_ids) or is_stale(record, now, stale_after):
            return STOPPED
        # Between phases counts as running
        if is_active(record) or translation == TranslationStatus.COMPLETED:
            return RUNNING
        return PENDING
    if translation == TranslationStatus.FAILED or proofread == ProofreadStatus.FAILED:
        return FAILED
    return COMPLETED


class PollingSession:
    """
    Per-view polling state: which records the viewer has given up on.

    A stopped record stays stopped until the viewer reruns its language.
    """

    def __init__(
        self,
        interval: float = POLL_INTERVAL_SECONDS,
        stale_after: timedelta = STALE_AFTER,
    ):
        self.interval = interval
        self.stale_after = stale_after
        self.stopped_ids: Set[str] = set()
        self._language_by_id: Dict[str, str] = {}

    def stop(self, output_id: str) -> None:
        self.stopped_ids.add(output_id)

    def resume(self, output_id: str) -> None:
        self.stopped_ids.discard(output_id)

    def clear_language(self, language_code: str) -> None:
        """Forget stopped records of a language that is being rerun."""
        for output_id, code in list(self._language_by_id.items()):
            if code == language_code:
                self.stopped_ids.discard(output_id)

    def observe(self, records: Iterable[RecordLike], now: Optional[datetime] = None) -> List[RecordLike]:
        """Record what was seen; stale records become stopped."""
        records = list(records)
        now = now or utc_now()
        for record in records:
            output_id = _get(record, "id")
            self._language_by_id[output_id] = _get(record, "language_code")
            if output_id not in self.stopped_ids and is_stale(record, now, self.stale_after):
                logger.info(f"Output {output_id} ({_get(record, 'language_code')}) looks stalled, stopping")
                self.stop(output_id)
        return records

    def state_of(self, record: RecordLike, now: Optional[datetime] = None) -> str:
        return display_state(record, now, self.stopped_ids, self.stale_after)

    def next_interval(self, records: Iterable[RecordLike], now: Optional[datetime] = None) -> Optional[float]:
        """Seconds until the next poll, or None when there is nothing left to wait for."""
        now = now or utc_now()
        records = self.observe(records, now)
        waiting = [
            record for record in records
            if not is_terminal(record) and self.state_of(record, now) != STOPPED
        ]
        return self.interval if waiting else None


class OutputPoller:
    """
    Poll a translation's outputs until nothing is running.

    Usage:
        async with httpx.AsyncClient(base_url="http://localhost:8000") as client:
            poller = OutputPoller(client, translation_id)
            records = await poller.poll()
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        translation_id: str,
        session: Optional[PollingSession] = None,
        max_polls: Optional[int] = None,
        on_update: Optional[Callable[[List[Dict[str, Any]]], None]] = None,
    ):
        self.client = client
        self.translation_id = translation_id
        self.session = session or PollingSession()
        self.max_polls = max_polls
        self.on_update = on_update

    async def fetch(self) -> List[Dict[str, Any]]:
        response = await self.client.get(f"/api/translations/{self.translation_id}/outputs")
        response.raise_for_status()
        return response.json()

    async def poll(self) -> List[Dict[str, Any]]:
        """Return the last records seen once polling stops."""
        polls = 0
        while True:
            records = await self.fetch()
            polls += 1
            if self.on_update:
                self.on_update(records)

            interval = self.session.next_interval(records)
            if interval is None:
                return records
            if self.max_polls is not None and polls >= self.max_polls:
                logger.info(f"[{self.translation_id}] Giving up after {polls} polls")
                return records

            await asyncio.sleep(interval)
