"""
Resilient Store - async facade over OutputRepository.

Each call runs the blocking sqlite work in a worker thread and is wrapped in
the store retry policy, so a locked database or dropped connection in one
language's task never blocks or fails its siblings outright.
"""

import asyncio
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from config.constants import STORE_RETRY_DELAYS, STORE_RETRY_MAX_ATTEMPTS

from .errors import NotFoundError, RecordSupersededError
from .output_record import OutputRecord, TransitionPlan, utc_now
from .repository import OutputRepository, new_id
from .retry import retry_on_store_error

T = TypeVar("T")


class ResilientStore:
    """Async, retrying access to the translation store."""

    def __init__(
        self,
        repository: OutputRepository,
        max_attempts: int = STORE_RETRY_MAX_ATTEMPTS,
        delays: Sequence[float] = STORE_RETRY_DELAYS,
        add_jitter: bool = True,
    ):
        self.repository = repository
        self.max_attempts = max_attempts
        self.delays = tuple(delays)
        self.add_jitter = add_jitter

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        return await retry_on_store_error(
            lambda: asyncio.to_thread(partial(func, *args)),
            max_attempts=self.max_attempts,
            delays=self.delays,
            add_jitter=self.add_jitter,
            operation=func.__name__,
        )

    # ========== Setup ==========

    async def seed_defaults(self) -> None:
        await self._call(self.repository.seed_defaults)

    # ========== Translations ==========

    async def create_translation(self, title: str, source_text: str) -> Dict[str, Any]:
        # Id is chosen once so a retried insert cannot create a second row
        return await self._call(self.repository.create_translation, new_id(), title, source_text)

    async def get_translation(self, translation_id: str) -> Optional[Dict[str, Any]]:
        return await self._call(self.repository.get_translation, translation_id)

    async def require_translation(self, translation_id: str) -> Dict[str, Any]:
        translation = await self.get_translation(translation_id)
        if translation is None:
            raise NotFoundError("Translation", translation_id)
        return translation

    async def delete_translation(self, translation_id: str) -> bool:
        return await self._call(self.repository.delete_translation, translation_id)

    # ========== Reference data ==========

    async def list_models(self) -> List[Dict[str, Any]]:
        return await self._call(self.repository.list_models)

    async def get_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        return await self._call(self.repository.get_model, model_id)

    async def get_default_model(self) -> Optional[Dict[str, Any]]:
        return await self._call(self.repository.get_default_model)

    async def list_languages(self) -> List[Dict[str, Any]]:
        return await self._call(self.repository.list_languages)

    async def get_languages(self, codes: Sequence[str]) -> List[Dict[str, Any]]:
        return await self._call(self.repository.get_languages, list(codes))

    async def get_setting(self, key: str) -> Optional[str]:
        return await self._call(self.repository.get_setting, key)

    async def set_setting(self, key: str, value: str) -> None:
        await self._call(self.repository.set_setting, key, value)

    # ========== Outputs ==========

    async def replace_output(self, record: OutputRecord) -> OutputRecord:
        return await self._call(self.repository.replace_output, record)

    async def get_output(self, output_id: str) -> Optional[OutputRecord]:
        return await self._call(self.repository.get_output, output_id)

    async def list_outputs(self, translation_id: str) -> List[OutputRecord]:
        return await self._call(self.repository.list_outputs, translation_id)

    async def update_output_text(self, output_id: str, translated_text: str) -> bool:
        return await self._call(self.repository.update_output_text, output_id, translated_text)

    async def transition(self, record: OutputRecord, plan: TransitionPlan) -> OutputRecord:
        """
        Persist a transition and return the updated record.

        Raises:
            RecordSupersededError: the row is gone or no longer in the state
                `record` describes; nothing was written.
        """
        updated_at = utc_now()
        written = await self._call(self.repository.apply_transition, plan, updated_at)
        if not written:
            raise RecordSupersededError(record.id)
        return record.apply(plan, updated_at)
