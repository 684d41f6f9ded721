"""
Pytest configuration and shared fixtures for Babellion pipeline tests.
"""
import re
import sys
import asyncio
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ai_providers import (
    AIMessage,
    AIProviderType,
    AIResponse,
    BaseAIProvider,
    GenerationGateway,
)
from pipeline import OutputRepository, ResilientStore
from pipeline.prompts import APPLY_CHANGES_REQUEST, PROPOSE_CHANGES_REQUEST


# ============================================================================
# Fake AI provider
# ============================================================================

PROPOSAL_JSON = '[{"original": "Bonjour", "changes": "Salut", "reason": "More natural"}]'


def language_of(messages: List[AIMessage]) -> str:
    """Target language named in the first user turn."""
    first = messages[0].content
    match = re.match(r"Translate to (.+?)\. This is the text:", first)
    if match:
        return match.group(1)
    match = re.match(r"Language: (.+)", first)
    return match.group(1) if match else "?"


def default_handler(messages: List[AIMessage], system_prompt: Optional[str], model: str) -> str:
    """Deterministic replies for the three kinds of pipeline calls."""
    language = language_of(messages)
    last = messages[-1].content
    if last.startswith("Translate to"):
        return f"[{language}] translated"
    if PROPOSE_CHANGES_REQUEST in last:
        return f"Here are the changes:\n```json\n{PROPOSAL_JSON}\n```"
    if last == APPLY_CHANGES_REQUEST:
        return f"[{language}] proofread"
    raise AssertionError(f"Unexpected prompt: {last[:80]}")


class FakeScript:
    """
    Scripted model behaviour shared by every FakeProvider of a test.

    handler(messages, system_prompt, model) returns the reply text, or raises.
    It may be a coroutine function.
    """

    def __init__(self):
        self.handler: Callable = default_handler
        self.calls: List[dict] = []
        self.finish_reason: Optional[str] = "stop"
        self.output_tokens: Optional[int] = 42

    async def respond(self, provider: "FakeProvider", messages, system_prompt, model) -> AIResponse:
        self.calls.append({
            "provider": provider.provider_type.value,
            "model": model,
            "system_prompt": system_prompt,
            "messages": list(messages),
        })
        reply = self.handler(messages, system_prompt, model)
        if asyncio.iscoroutine(reply):
            reply = await reply
        return AIResponse(
            content=reply,
            model=model,
            provider=provider.provider_type,
            usage={"input_tokens": 10, "output_tokens": self.output_tokens}
            if self.output_tokens is not None else None,
            finish_reason=self.finish_reason,
        )

    def prompts_for(self, language: str) -> List[str]:
        return [
            call["messages"][-1].content
            for call in self.calls
            if language_of(call["messages"]) == language
        ]


class FakeProvider(BaseAIProvider):
    """Provider that answers from a FakeScript instead of the network."""

    def __init__(self, config, script: FakeScript, provider_type: AIProviderType):
        super().__init__(config)
        self.script = script
        self._type = provider_type
        self.initialized = False

    @property
    def provider_type(self) -> AIProviderType:
        return self._type

    @property
    def supported_models(self) -> List[str]:
        return [self.config.model]

    async def initialize(self) -> None:
        self.initialized = True

    async def complete(self, messages, system_prompt=None, **kwargs) -> AIResponse:
        return await self.script.respond(
            self, messages, system_prompt, kwargs.get("model", self.config.model)
        )

    async def stream(self, messages, system_prompt=None, **kwargs):
        response = await self.complete(messages, system_prompt, **kwargs)
        # Two chunks so accumulation is exercised
        middle = len(response.content) // 2
        yield response.content[:middle]
        yield response.content[middle:]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_script() -> FakeScript:
    return FakeScript()


@pytest.fixture
def gateway(fake_script) -> GenerationGateway:
    """Real gateway wired to fake providers for both OpenAI and Anthropic."""
    registry = {
        ptype: partial(FakeProvider, script=fake_script, provider_type=ptype)
        for ptype in (AIProviderType.OPENAI, AIProviderType.ANTHROPIC)
    }
    return GenerationGateway(
        api_keys={AIProviderType.OPENAI: "test-openai", AIProviderType.ANTHROPIC: "test-anthropic"},
        registry=registry,
        default_timeout=5.0,
    )


@pytest.fixture
def repository(tmp_path) -> OutputRepository:
    """Seeded repository on a temporary sqlite file."""
    repo = OutputRepository(tmp_path / "babellion_test.db")
    repo.seed_defaults()
    return repo


@pytest.fixture
def store(repository) -> ResilientStore:
    """Store with an instant retry schedule."""
    return ResilientStore(repository, max_attempts=3, delays=(0, 0, 0), add_jitter=False)


@pytest.fixture
def translation(repository) -> dict:
    """A source document in the store."""
    return repository.create_translation("doc-1", "Launch", "<p>Hello, world!</p>")


@pytest.fixture
def default_model(repository) -> dict:
    return repository.get_default_model()
