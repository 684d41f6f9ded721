"""
Generation Gateway
Babellion - Text Generation Gateway

One entry point for every language-model call the pipeline makes. Resolves a
ModelSpec to a provider instance, applies the timeout, and normalizes
results and failures.
"""

import asyncio
import time
from typing import Optional, Dict, List, Type, Union
from dataclasses import dataclass

from config.constants import GENERATION_TIMEOUT_SECONDS
from config.logging_config import get_logger

from .base import (
    BaseAIProvider,
    AIProviderType,
    AIConfig,
    AIMessage,
    Conversation,
    GenerationError,
    GenerationRefusedError,
    GenerationResult,
    GenerationTimeoutError,
    ModelSpec,
    ProviderNotConfiguredError,
    UnsupportedProviderError,
)
from .claude_provider import ClaudeProvider
from .openai_provider import OpenAIProvider

logger = get_logger(__name__)


@dataclass
class ProviderInfo:
    """Information about an AI provider"""
    type: AIProviderType
    name: str
    description: str
    models: Dict[str, str]
    default_model: str
    env_key: str  # Environment variable name for API key


# Registry of all available providers
PROVIDER_REGISTRY: Dict[AIProviderType, Type[BaseAIProvider]] = {
    AIProviderType.ANTHROPIC: ClaudeProvider,
    AIProviderType.OPENAI: OpenAIProvider,
}

# Provider information
PROVIDER_INFO: Dict[AIProviderType, ProviderInfo] = {
    AIProviderType.ANTHROPIC: ProviderInfo(
        type=AIProviderType.ANTHROPIC,
        name="Anthropic Claude",
        description="Claude - nuanced, faithful translation",
        models=ClaudeProvider.MODELS,
        default_model=ClaudeProvider.DEFAULT_MODEL,
        env_key="ANTHROPIC_API_KEY"
    ),
    AIProviderType.OPENAI: ProviderInfo(
        type=AIProviderType.OPENAI,
        name="OpenAI GPT",
        description="GPT-5 - reasoning translation and proofreading",
        models=OpenAIProvider.MODELS,
        default_model=OpenAIProvider.DEFAULT_MODEL,
        env_key="OPENAI_API_KEY"
    ),
}

# Finish reasons that mean the provider declined to answer
REFUSAL_FINISH_REASONS = {"refusal", "content_filter"}

GenerationInput = Union[str, Conversation]


def parse_provider(name: str) -> AIProviderType:
    """Map a provider name ("openai", "anthropic", "claude") to its enum"""
    aliases = {
        "openai": AIProviderType.OPENAI,
        "anthropic": AIProviderType.ANTHROPIC,
        "claude": AIProviderType.ANTHROPIC,
    }
    try:
        return aliases[name.lower()]
    except KeyError:
        raise UnsupportedProviderError(f"Unsupported provider: {name}", provider=name)


class GenerationGateway:
    """
    Capability-level interface to the language models.

    Usage:
        gateway = GenerationGateway(api_keys={AIProviderType.OPENAI: "sk-..."})

        result = await gateway.generate(
            ModelSpec("openai", "gpt-5"),
            instruction="You are a professional translator...",
            prompt="Translate to Spanish. This is the text: Hello",
            stream=True,
        )
        print(result.text, result.output_tokens, result.duration_ms)
    """

    def __init__(
        self,
        api_keys: Optional[Dict[AIProviderType, str]] = None,
        registry: Optional[Dict[AIProviderType, Type[BaseAIProvider]]] = None,
        default_timeout: Optional[float] = None,
        max_tokens: int = 4096,
        default_stream: bool = False,
    ):
        """
        Args:
            api_keys: API key per provider; providers without a key are unavailable.
            registry: Provider classes by type (defaults to PROVIDER_REGISTRY).
            default_timeout: Seconds before a call is abandoned, None for no limit.
            max_tokens: Output token ceiling passed to every call.
            default_stream: Whether generate() streams when stream is not given.
        """
        self._api_keys = api_keys or {}
        self._registry = registry or PROVIDER_REGISTRY
        self.default_timeout = default_timeout
        self.max_tokens = max_tokens
        self.default_stream = default_stream
        self._providers: Dict[str, BaseAIProvider] = {}
        self._initialized: Dict[str, bool] = {}

    def _get_api_key(self, provider_type: AIProviderType) -> str:
        key = self._api_keys.get(provider_type)
        if not key:
            info = PROVIDER_INFO.get(provider_type)
            env_hint = info.env_key if info else provider_type.value
            raise ProviderNotConfiguredError(
                f"{provider_type.value} API key not configured (set {env_hint})",
                provider=provider_type.value,
            )
        return key

    def _create_provider(self, provider_type: AIProviderType, model: str) -> BaseAIProvider:
        provider_class = self._registry.get(provider_type)
        if provider_class is None:
            raise UnsupportedProviderError(
                f"Unsupported provider: {provider_type.value}",
                provider=provider_type.value,
            )

        config = AIConfig(
            api_key=self._get_api_key(provider_type),
            model=model,
            max_tokens=self.max_tokens,
            timeout=self.default_timeout or GENERATION_TIMEOUT_SECONDS,
        )
        return provider_class(config)

    async def get_provider(self, provider: str, model: str) -> BaseAIProvider:
        """Get a provider instance for (provider, model), initializing if needed."""
        ptype = parse_provider(provider)
        cache_key = f"{ptype.value}:{model}"

        if cache_key not in self._providers:
            self._providers[cache_key] = self._create_provider(ptype, model)

        instance = self._providers[cache_key]

        if cache_key not in self._initialized:
            await instance.initialize()
            self._initialized[cache_key] = True

        return instance

    def get_available_providers(self) -> List[ProviderInfo]:
        """Providers that have an API key configured"""
        return [
            info for ptype, info in PROVIDER_INFO.items()
            if self._api_keys.get(ptype) and ptype in self._registry
        ]

    @staticmethod
    def _to_messages(prompt: GenerationInput) -> List[AIMessage]:
        if isinstance(prompt, Conversation):
            if not len(prompt):
                raise ValueError("Conversation has no turns")
            return prompt.messages
        return [AIMessage(role="user", content=prompt)]

    async def generate(
        self,
        model: ModelSpec,
        instruction: Optional[str],
        prompt: GenerationInput,
        stream: Optional[bool] = None,
        timeout: Optional[float] = None,
    ) -> GenerationResult:
        """
        Run one generation call.

        Args:
            model: Provider and model identifier.
            instruction: System instruction.
            prompt: A single user message, or an explicit Conversation of prior turns.
            stream: Stream-and-accumulate instead of a plain call.
            timeout: Overrides default_timeout for this call.

        Returns:
            GenerationResult. A successful call with no text is returned with
            is_empty=True rather than raised.

        Raises:
            GenerationTimeoutError: the call exceeded the timeout.
            GenerationRefusedError: the provider declined to answer.
            GenerationError: any other provider or configuration failure.
        """
        messages = self._to_messages(prompt)
        use_stream = self.default_stream if stream is None else stream
        limit = self.default_timeout if timeout is None else timeout

        provider = await self.get_provider(model.provider, model.model_identifier)
        if use_stream and not provider.supports_streaming:
            use_stream = False

        call = provider.stream_complete if use_stream else provider.complete
        start_time = time.monotonic()

        try:
            response = await asyncio.wait_for(
                call(messages, system_prompt=instruction, model=model.model_identifier),
                timeout=limit,
            )
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - start_time
            logger.error(
                f"Generation timed out after {elapsed:.1f}s "
                f"({model.provider}/{model.model_identifier})"
            )
            raise GenerationTimeoutError(
                f"Generation timed out after {elapsed:.0f}s",
                provider=model.provider,
                model=model.model_identifier,
            )
        except GenerationError:
            raise
        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.error(
                f"Generation failed after {elapsed:.1f}s "
                f"({model.provider}/{model.model_identifier}): {e}"
            )
            raise GenerationError(
                f"{model.provider} request failed: {e}",
                provider=model.provider,
                model=model.model_identifier,
            ) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)

        if response.finish_reason in REFUSAL_FINISH_REASONS:
            raise GenerationRefusedError(
                f"{model.provider} declined the request ({response.finish_reason})",
                provider=model.provider,
                model=model.model_identifier,
            )

        result = GenerationResult(
            text=response.content or "",
            model=response.model or model.model_identifier,
            provider=model.provider,
            output_tokens=response.output_tokens,
            duration_ms=duration_ms,
            finish_reason=response.finish_reason,
        )

        logger.debug(
            f"Generation done: {model.provider}/{result.model}, "
            f"{len(result.text)} chars, tokens={result.output_tokens}, {duration_ms}ms"
        )
        return result


# ========== Factory function ==========

def create_generation_gateway(settings=None) -> GenerationGateway:
    """
    Build a gateway from application settings.

    Args:
        settings: config.settings.Settings instance (defaults to the global one)
    """
    if settings is None:
        from config.settings import settings

    api_keys = {}
    if settings.openai_api_key:
        api_keys[AIProviderType.OPENAI] = settings.openai_api_key
    if settings.anthropic_api_key:
        api_keys[AIProviderType.ANTHROPIC] = settings.anthropic_api_key

    return GenerationGateway(
        api_keys=api_keys,
        default_timeout=settings.generation_timeout_seconds,
        max_tokens=settings.max_output_tokens,
        default_stream=settings.stream_generation,
    )
