"""
AI Providers Package
Babellion - Text Generation Gateway

Supports:
- Anthropic Claude (claude-sonnet-4, claude-3.5-haiku, ...)
- OpenAI GPT (gpt-5, gpt-5-mini, gpt-4o, o-series)

Usage:
    from ai_providers import create_generation_gateway, ModelSpec

    gateway = create_generation_gateway()

    result = await gateway.generate(
        ModelSpec("anthropic", "claude-sonnet-4-20250514"),
        instruction="You are a professional translator.",
        prompt="Translate to French. This is the text: Hello, world!",
    )
    print(result.text)

    # Multi-turn: pass prior turns explicitly
    conversation = Conversation().user("...").assistant("...").user("...")
    result = await gateway.generate(model, instruction, conversation)
"""

from .base import (
    BaseAIProvider,
    AIProviderType,
    AIMessage,
    AIResponse,
    AIConfig,
    Conversation,
    ModelSpec,
    GenerationResult,
    GenerationError,
    GenerationTimeoutError,
    GenerationRefusedError,
    ProviderNotConfiguredError,
    UnsupportedProviderError,
)

from .claude_provider import ClaudeProvider
from .openai_provider import OpenAIProvider, is_reasoning_model

from .manager import (
    GenerationGateway,
    ProviderInfo,
    PROVIDER_REGISTRY,
    PROVIDER_INFO,
    parse_provider,
    create_generation_gateway,
)

__all__ = [
    # Base classes
    "BaseAIProvider",
    "AIProviderType",
    "AIMessage",
    "AIResponse",
    "AIConfig",
    "Conversation",
    "ModelSpec",
    "GenerationResult",

    # Errors
    "GenerationError",
    "GenerationTimeoutError",
    "GenerationRefusedError",
    "ProviderNotConfiguredError",
    "UnsupportedProviderError",

    # Providers
    "ClaudeProvider",
    "OpenAIProvider",
    "is_reasoning_model",

    # Gateway
    "GenerationGateway",
    "ProviderInfo",
    "PROVIDER_REGISTRY",
    "PROVIDER_INFO",
    "parse_provider",
    "create_generation_gateway",
]

__version__ = "1.0.0"
