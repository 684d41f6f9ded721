"""
Base AI Provider - Abstract Interface
Babellion - Text Generation Gateway
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, AsyncIterator, Tuple
from dataclasses import dataclass, field
from enum import Enum

from config.constants import GENERATION_TIMEOUT_SECONDS


class AIProviderType(Enum):
    """Supported AI Providers"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


# ========== Errors ==========

class GenerationError(Exception):
    """A generation call failed (provider error, refusal, bad config)."""

    def __init__(self, message: str, provider: Optional[str] = None, model: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.model = model


class GenerationTimeoutError(GenerationError):
    """The generation call did not finish within the allowed time."""


class GenerationRefusedError(GenerationError):
    """The provider declined to answer (safety / content filter)."""


class ProviderNotConfiguredError(GenerationError):
    """No API key is configured for the requested provider."""


class UnsupportedProviderError(GenerationError):
    """The requested provider is not registered."""


# ========== Values ==========

@dataclass(frozen=True)
class AIMessage:
    """Unified message format across providers"""
    role: str  # "user", "assistant"
    content: str


@dataclass(frozen=True)
class Conversation:
    """
    Ordered list of prior turns passed verbatim into a generation call.

    Conversations are plain values: extending one returns a new Conversation,
    nothing is kept on the provider side between calls.
    """
    turns: Tuple[AIMessage, ...] = ()

    def user(self, content: str) -> "Conversation":
        return Conversation(self.turns + (AIMessage(role="user", content=content),))

    def assistant(self, content: str) -> "Conversation":
        return Conversation(self.turns + (AIMessage(role="assistant", content=content),))

    @property
    def messages(self) -> List[AIMessage]:
        return list(self.turns)

    def __len__(self) -> int:
        return len(self.turns)


@dataclass(frozen=True)
class ModelSpec:
    """Provider/model selector handed to the gateway"""
    provider: str
    model_identifier: str


@dataclass
class AIResponse:
    """Unified response format"""
    content: str
    model: str
    provider: AIProviderType
    usage: Optional[Dict[str, int]] = None  # tokens used
    finish_reason: Optional[str] = None
    raw_response: Optional[Any] = None

    @property
    def output_tokens(self) -> Optional[int]:
        if not self.usage:
            return None
        return self.usage.get("output_tokens")


@dataclass
class GenerationResult:
    """What the gateway hands back to the pipeline"""
    text: str
    model: str
    provider: str
    output_tokens: Optional[int] = None
    duration_ms: int = 0
    finish_reason: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        """Successful call that produced no text"""
        return not self.text.strip()


@dataclass
class AIConfig:
    """Provider configuration"""
    api_key: str
    model: str
    max_tokens: int = 4096
    temperature: float = 0.3
    timeout: float = GENERATION_TIMEOUT_SECONDS  # SDK request timeout, seconds
    base_url: Optional[str] = None  # For custom endpoints
    extra: Dict[str, Any] = field(default_factory=dict)


class BaseAIProvider(ABC):
    """
    Abstract base class for AI providers.
    All providers must implement these methods.
    """

    def __init__(self, config: AIConfig):
        self.config = config
        self._client = None

    @property
    @abstractmethod
    def provider_type(self) -> AIProviderType:
        """Return the provider type"""
        pass

    @property
    @abstractmethod
    def supported_models(self) -> List[str]:
        """Return list of known models"""
        pass

    @property
    def supports_streaming(self) -> bool:
        """Whether this provider supports streaming responses"""
        return True

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the client connection"""
        pass

    @abstractmethod
    async def complete(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AIResponse:
        """
        Generate a completion from the AI model.

        Args:
            messages: List of conversation messages
            system_prompt: Optional system prompt
            **kwargs: Provider-specific parameters

        Returns:
            AIResponse with the generated content
        """
        pass

    @abstractmethod
    async def stream(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AsyncIterator[str]:
        """
        Stream a completion from the AI model.

        Yields:
            String chunks of the response
        """
        pass

    async def stream_complete(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AIResponse:
        """
        Stream a completion and accumulate it into one AIResponse.

        Produces the same final text as complete(). Providers that can read
        token usage off the stream override this.
        """
        parts: List[str] = []
        async for chunk in self.stream(messages, system_prompt, **kwargs):
            parts.append(chunk)

        return AIResponse(
            content="".join(parts),
            model=kwargs.get("model", self.config.model),
            provider=self.provider_type,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} model={self.config.model}>"
