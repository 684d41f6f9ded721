"""
Claude AI Provider - Anthropic
Babellion - Text Generation Gateway
"""

from typing import Optional, List, Dict, Any, AsyncIterator

import anthropic

from .base import (
    BaseAIProvider,
    AIProviderType,
    AIMessage,
    AIResponse,
)


class ClaudeProvider(BaseAIProvider):
    """
    Anthropic Claude AI Provider

    Supports:
    - Claude Sonnet 4 (default for translation)
    - Claude 3.5 Haiku (fast, cost-effective)
    - Streaming
    """

    MODELS = {
        "claude-sonnet-4-20250514": "Claude Sonnet 4",
        "claude-3-5-sonnet-20241022": "Claude 3.5 Sonnet",
        "claude-3-5-haiku-20241022": "Claude 3.5 Haiku",
    }

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    @property
    def provider_type(self) -> AIProviderType:
        return AIProviderType.ANTHROPIC

    @property
    def supported_models(self) -> List[str]:
        return list(self.MODELS.keys())

    async def initialize(self) -> None:
        """Initialize Anthropic client"""
        self._client = anthropic.AsyncAnthropic(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=0,  # generation calls are never retried
        )

    def _convert_messages(
        self,
        messages: List[AIMessage]
    ) -> List[Dict[str, Any]]:
        """Convert AIMessage to Anthropic format"""
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    def _request_params(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str],
        **kwargs
    ) -> Dict[str, Any]:
        return {
            "model": kwargs.get("model", self.config.model),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
            "system": system_prompt or "",
            "messages": self._convert_messages(messages),
        }

    @staticmethod
    def _extract_text(message: Any) -> str:
        """Join the text blocks of a Messages API response; other block types are skipped"""
        parts = [
            block.text
            for block in (message.content or [])
            if getattr(block, "type", None) == "text"
        ]
        return "".join(parts)

    def _to_response(self, message: Any) -> AIResponse:
        usage = None
        if getattr(message, "usage", None) is not None:
            usage = {
                "input_tokens": message.usage.input_tokens,
                "output_tokens": message.usage.output_tokens
            }

        return AIResponse(
            content=self._extract_text(message),
            model=message.model,
            provider=self.provider_type,
            usage=usage,
            finish_reason=message.stop_reason,
            raw_response=message
        )

    async def complete(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AIResponse:
        """Generate completion using Claude"""
        if not self._client:
            await self.initialize()

        response = await self._client.messages.create(
            **self._request_params(messages, system_prompt, **kwargs)
        )
        return self._to_response(response)

    async def stream(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AsyncIterator[str]:
        """Stream completion using Claude"""
        if not self._client:
            await self.initialize()

        async with self._client.messages.stream(
            **self._request_params(messages, system_prompt, **kwargs)
        ) as stream:
            async for text in stream.text_stream:
                yield text

    async def stream_complete(
        self,
        messages: List[AIMessage],
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> AIResponse:
        """Stream with Claude and build the response from the final message"""
        if not self._client:
            await self.initialize()

        async with self._client.messages.stream(
            **self._request_params(messages, system_prompt, **kwargs)
        ) as stream:
            async for _ in stream.text_stream:
                pass
            final_message = await stream.get_final_message()

        return self._to_response(final_message)
