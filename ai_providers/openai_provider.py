"""
OpenAI Provider - GPT-5, GPT-4o, o-series
Babellion - Text Generation Gateway
"""

from typing import Optional, List, Dict, Any, AsyncIterator

from openai import AsyncOpenAI

from config.constants import REASONING_MODEL_PREFIXES, REASONING_EFFORT

from .base import (
    BaseAIProvider,
    AIProviderType,
    AIMessage,
    AIResponse,
)


def is_reasoning_model(model: str) -> bool:
    """Reasoning models are selected by identifier prefix (gpt-5*, o1*, o3*, ...)"""
    return any(model.startswith(prefix) for prefix in REASONING_MODEL_PREFIXES)


class OpenAIProvider(BaseAIProvider):
    """
    OpenAI GPT Provider

    Supports:
    - GPT-5 / GPT-5 Mini (reasoning)
    - GPT-4o, GPT-4o-mini
    - o-series reasoning models
    - Streaming
    """

    MODELS = {
        "gpt-5": "GPT-5",
        "gpt-5-mini": "GPT-5 Mini",
        "gpt-4o": "GPT-4o",
        "gpt-4o-mini": "GPT-4o Mini (Fast)",
        "o3-mini": "o3 Mini (Reasoning)",
    }

    DEFAULT_MODEL = "gpt-5"

    @property
    def provider_type(self) -> AIProviderType:
        return AIProviderType.OPENAI

    @property
    def supported_models(self) -> List[str]:
        return list(self.MODELS.keys())

    async def initialize(self) -> None:
        """Initialize OpenAI client"""
        self._client = AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=0,  # generation calls are never retried
        )

    def _convert_messages(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Convert AIMessage to OpenAI format"""
        converted = []

        # Add system message if provided
        if system_prompt:
            converted.append({"role": "system", "content": system_prompt})

        for msg in messages:
            converted.append({"role": msg.role, "content": msg.content})

        return converted

    def _request_params(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str],
        **kwargs
    ) -> Dict[str, Any]:
        model = kwargs.get("model", self.config.model)
        max_tokens = kwargs.get("max_tokens", self.config.max_tokens)

        params: Dict[str, Any] = {
            "model": model,
            "messages": self._convert_messages(messages, system_prompt),
        }

        # Reasoning models reject temperature and count hidden reasoning
        # tokens against max_completion_tokens
        if is_reasoning_model(model):
            params["max_completion_tokens"] = max_tokens
            params["reasoning_effort"] = kwargs.get("reasoning_effort", REASONING_EFFORT)
        else:
            params["max_tokens"] = max_tokens
            params["temperature"] = kwargs.get("temperature", self.config.temperature)

        return params

    async def complete(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AIResponse:
        """Generate completion using OpenAI"""
        if not self._client:
            await self.initialize()

        response = await self._client.chat.completions.create(
            **self._request_params(messages, system_prompt, **kwargs)
        )

        choice = response.choices[0]

        return AIResponse(
            content=choice.message.content or "",
            model=response.model,
            provider=self.provider_type,
            usage={
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens
            } if response.usage else None,
            finish_reason=choice.finish_reason,
            raw_response=response
        )

    async def stream(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AsyncIterator[str]:
        """Stream completion using OpenAI"""
        if not self._client:
            await self.initialize()

        stream = await self._client.chat.completions.create(
            **self._request_params(messages, system_prompt, **kwargs),
            stream=True
        )

        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

    async def stream_complete(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AIResponse:
        """Stream with OpenAI, accumulating text and reading usage off the last chunk"""
        if not self._client:
            await self.initialize()

        stream = await self._client.chat.completions.create(
            **self._request_params(messages, system_prompt, **kwargs),
            stream=True,
            stream_options={"include_usage": True},
        )

        parts: List[str] = []
        model = kwargs.get("model", self.config.model)
        finish_reason = None
        usage = None

        async for chunk in stream:
            model = chunk.model or model
            if chunk.choices:
                choice = chunk.choices[0]
                if choice.delta.content:
                    parts.append(choice.delta.content)
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
            if chunk.usage:
                usage = {
                    "input_tokens": chunk.usage.prompt_tokens,
                    "output_tokens": chunk.usage.completion_tokens
                }

        return AIResponse(
            content="".join(parts),
            model=model,
            provider=self.provider_type,
            usage=usage,
            finish_reason=finish_reason,
        )
