"""
Unit tests for ai_providers - generation gateway and provider request shaping
"""
import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ai_providers import (
    AIConfig,
    AIMessage,
    AIProviderType,
    ClaudeProvider,
    Conversation,
    GenerationError,
    GenerationGateway,
    GenerationRefusedError,
    GenerationTimeoutError,
    ModelSpec,
    OpenAIProvider,
    ProviderNotConfiguredError,
    UnsupportedProviderError,
    is_reasoning_model,
    parse_provider,
)
from config.constants import GENERATION_TIMEOUT_SECONDS

GPT5 = ModelSpec("openai", "gpt-5")
SONNET = ModelSpec("anthropic", "claude-sonnet-4-20250514")


class TestGenerate:
    """GenerationGateway.generate"""

    @pytest.mark.asyncio
    async def test_single_prompt(self, gateway, fake_script):
        fake_script.handler = lambda messages, system, model: "Bonjour"

        result = await gateway.generate(GPT5, "Be precise.", "Translate to French. This is the text: Hi")

        assert result.text == "Bonjour"
        assert result.provider == "openai"
        assert result.model == "gpt-5"
        assert result.output_tokens == 42
        assert result.duration_ms >= 0
        assert not result.is_empty

        call = fake_script.calls[0]
        assert call["system_prompt"] == "Be precise."
        assert call["messages"] == [
            AIMessage(role="user", content="Translate to French. This is the text: Hi")
        ]

    @pytest.mark.asyncio
    async def test_conversation_turns_are_passed_verbatim(self, gateway, fake_script):
        fake_script.handler = lambda messages, system, model: "final"
        conversation = Conversation().user("step one").assistant("proposal").user("step two")

        await gateway.generate(SONNET, None, conversation)

        call = fake_script.calls[0]
        assert call["provider"] == "anthropic"
        assert [(m.role, m.content) for m in call["messages"]] == [
            ("user", "step one"),
            ("assistant", "proposal"),
            ("user", "step two"),
        ]

    @pytest.mark.asyncio
    async def test_streaming_produces_the_same_text(self, gateway, fake_script):
        fake_script.handler = lambda messages, system, model: "Guten Tag, Welt"

        plain = await gateway.generate(GPT5, None, "hi", stream=False)
        streamed = await gateway.generate(GPT5, None, "hi", stream=True)

        assert plain.text == streamed.text == "Guten Tag, Welt"

    @pytest.mark.asyncio
    async def test_empty_result_is_returned_not_raised(self, gateway, fake_script):
        fake_script.handler = lambda messages, system, model: "  \n"

        result = await gateway.generate(GPT5, None, "hi")

        assert result.is_empty

    @pytest.mark.asyncio
    async def test_timeout(self, gateway, fake_script):
        async def slow(messages, system, model):
            await asyncio.sleep(1)
            return "too late"

        fake_script.handler = slow

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await gateway.generate(GPT5, None, "hi", timeout=0.01)
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_provider_errors_are_wrapped(self, gateway, fake_script):
        def broken(messages, system, model):
            raise RuntimeError("503 upstream overloaded")

        fake_script.handler = broken

        with pytest.raises(GenerationError) as exc_info:
            await gateway.generate(SONNET, None, "hi")

        assert "503 upstream overloaded" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_refusal(self, gateway, fake_script):
        fake_script.handler = lambda messages, system, model: ""
        fake_script.finish_reason = "refusal"

        with pytest.raises(GenerationRefusedError):
            await gateway.generate(SONNET, None, "hi")

    @pytest.mark.asyncio
    async def test_empty_conversation_rejected(self, gateway):
        with pytest.raises(ValueError):
            await gateway.generate(GPT5, None, Conversation())

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        gateway = GenerationGateway(api_keys={})
        with pytest.raises(ProviderNotConfiguredError) as exc_info:
            await gateway.generate(GPT5, None, "hi")
        assert "OPENAI_API_KEY" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_provider_instances_are_cached(self, gateway):
        first = await gateway.get_provider("openai", "gpt-5")
        second = await gateway.get_provider("openai", "gpt-5")
        other = await gateway.get_provider("openai", "gpt-5-mini")

        assert first is second
        assert first is not other
        assert first.initialized

    def test_available_providers(self, gateway):
        types = {info.type for info in gateway.get_available_providers()}
        assert types == {AIProviderType.OPENAI, AIProviderType.ANTHROPIC}

        only_openai = GenerationGateway(api_keys={AIProviderType.OPENAI: "k"})
        assert [info.type for info in only_openai.get_available_providers()] == [AIProviderType.OPENAI]


class TestParseProvider:

    @pytest.mark.parametrize("name,expected", [
        ("openai", AIProviderType.OPENAI),
        ("OpenAI", AIProviderType.OPENAI),
        ("anthropic", AIProviderType.ANTHROPIC),
        ("claude", AIProviderType.ANTHROPIC),
    ])
    def test_known(self, name, expected):
        assert parse_provider(name) == expected

    def test_unknown(self):
        with pytest.raises(UnsupportedProviderError):
            parse_provider("gemini")


class TestProviderRequests:
    """Request parameters built for each provider SDK"""

    @pytest.mark.parametrize("model,expected", [
        ("gpt-5", True),
        ("gpt-5-mini", True),
        ("o3-mini", True),
        ("gpt-4o", False),
        ("gpt-4o-mini", False),
    ])
    def test_reasoning_model_detection(self, model, expected):
        assert is_reasoning_model(model) is expected

    def test_openai_reasoning_params(self):
        provider = OpenAIProvider(AIConfig(api_key="k", model="gpt-5", max_tokens=30000))
        params = provider._request_params([AIMessage("user", "hi")], "system text", model="gpt-5")

        assert params["max_completion_tokens"] == 30000
        assert params["reasoning_effort"] == "medium"
        assert "temperature" not in params
        assert params["messages"][0] == {"role": "system", "content": "system text"}

    def test_openai_chat_params(self):
        provider = OpenAIProvider(AIConfig(api_key="k", model="gpt-4o", max_tokens=1000))
        params = provider._request_params([AIMessage("user", "hi")], None, model="gpt-4o")

        assert params["max_tokens"] == 1000
        assert params["temperature"] == 0.3
        assert "reasoning_effort" not in params
        assert params["messages"] == [{"role": "user", "content": "hi"}]

    def test_claude_params(self):
        provider = ClaudeProvider(AIConfig(api_key="k", model="claude-sonnet-4-20250514"))
        messages = [AIMessage("user", "a"), AIMessage("assistant", "b"), AIMessage("user", "c")]
        params = provider._request_params(messages, "be brief")

        assert params["system"] == "be brief"
        assert params["model"] == "claude-sonnet-4-20250514"
        assert [m["role"] for m in params["messages"]] == ["user", "assistant", "user"]


def claude_message(text="Bonjour", stop_reason="end_turn"):
    """Shaped like anthropic.types.Message"""
    return SimpleNamespace(
        model="claude-sonnet-4-20250514",
        content=[
            SimpleNamespace(type="thinking", thinking="..."),
            SimpleNamespace(type="text", text=text),
        ],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=12, output_tokens=5),
    )


class FakeMessageStream:
    """Async context manager standing in for messages.stream(...)"""

    def __init__(self, message, pieces):
        self.message = message
        self.pieces = pieces

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    @property
    def text_stream(self):
        async def generate():
            for piece in self.pieces:
                yield piece
        return generate()

    async def get_final_message(self):
        return self.message


def openai_chunk(content=None, finish_reason=None, usage=None, with_choice=True):
    choices = []
    if with_choice:
        choices = [SimpleNamespace(delta=SimpleNamespace(content=content), finish_reason=finish_reason)]
    return SimpleNamespace(model="gpt-4o-2024-08-06", choices=choices, usage=usage)


class TestProviderClients:
    """Providers against their SDK clients"""

    @pytest.mark.asyncio
    async def test_claude_client_timeout_is_explicit(self):
        provider = ClaudeProvider(AIConfig(api_key="k", model="claude-sonnet-4-20250514"))
        await provider.initialize()
        assert provider._client.timeout == GENERATION_TIMEOUT_SECONDS
        assert provider._client.max_retries == 0

    @pytest.mark.asyncio
    async def test_openai_client_timeout_is_explicit(self):
        provider = OpenAIProvider(AIConfig(api_key="k", model="gpt-5", timeout=120.0))
        await provider.initialize()
        assert provider._client.timeout == 120.0
        assert provider._client.max_retries == 0

    @pytest.mark.asyncio
    async def test_claude_complete_with_large_max_tokens(self):
        """A plain Messages call with a large token budget goes out over HTTP."""
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(json.loads(request.content))
            assert request.url.path == "/v1/messages"
            return httpx.Response(200, json={
                "id": "msg_1",
                "type": "message",
                "role": "assistant",
                "model": "claude-sonnet-4-20250514",
                "content": [{"type": "text", "text": "Bonjour"}],
                "stop_reason": "end_turn",
                "stop_sequence": None,
                "usage": {"input_tokens": 10, "output_tokens": 3},
            })

        provider = ClaudeProvider(AIConfig(
            api_key="k", model="claude-sonnet-4-20250514", max_tokens=30000,
        ))
        await provider.initialize()
        provider._client = provider._client.with_options(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        response = await provider.complete([AIMessage("user", "Translate to French: Hello")], "Be precise.")

        assert response.content == "Bonjour"
        assert response.finish_reason == "end_turn"
        assert response.usage == {"input_tokens": 10, "output_tokens": 3}
        assert sent[0]["max_tokens"] == 30000
        assert sent[0]["system"] == "Be precise."

    @pytest.mark.asyncio
    async def test_claude_plain_and_streamed_agree(self):
        message = claude_message()
        provider = ClaudeProvider(AIConfig(api_key="k", model="claude-sonnet-4-20250514"))
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=message)
        provider._client.messages.stream = MagicMock(
            return_value=FakeMessageStream(message, ["Bon", "jour"])
        )
        messages = [AIMessage("user", "hi")]

        plain = await provider.complete(messages, "sys")
        streamed = await provider.stream_complete(messages, "sys")

        assert plain.content == streamed.content == "Bonjour"
        assert plain.usage == streamed.usage == {"input_tokens": 12, "output_tokens": 5}
        assert plain.finish_reason == streamed.finish_reason == "end_turn"
        assert plain.model == streamed.model
        assert (
            provider._client.messages.create.await_args.kwargs
            == provider._client.messages.stream.call_args.kwargs
        )

    @pytest.mark.asyncio
    async def test_openai_plain_and_streamed_agree(self):
        usage = SimpleNamespace(prompt_tokens=20, completion_tokens=7)
        response = SimpleNamespace(
            model="gpt-4o-2024-08-06",
            choices=[SimpleNamespace(
                message=SimpleNamespace(content="Bonjour le monde"),
                finish_reason="stop",
            )],
            usage=usage,
        )
        chunks = [
            openai_chunk("Bonjour"),
            openai_chunk(" le monde"),
            openai_chunk(None, finish_reason="stop"),
            openai_chunk(usage=usage, with_choice=False),
        ]

        async def stream_of(items):
            for item in items:
                yield item

        def create(**params):
            if params.get("stream"):
                return stream_of(chunks)
            return response

        provider = OpenAIProvider(AIConfig(api_key="k", model="gpt-4o"))
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(side_effect=create)
        messages = [AIMessage("user", "hi")]

        plain = await provider.complete(messages, "sys")
        streamed = await provider.stream_complete(messages, "sys")

        assert plain.content == streamed.content == "Bonjour le monde"
        assert plain.usage == streamed.usage == {"input_tokens": 20, "output_tokens": 7}
        assert plain.finish_reason == streamed.finish_reason == "stop"
        assert plain.model == streamed.model == "gpt-4o-2024-08-06"

        stream_call = provider._client.chat.completions.create.await_args_list[1].kwargs
        assert stream_call["stream"] is True
        assert stream_call["stream_options"] == {"include_usage": True}
