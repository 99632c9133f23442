"""Tests for model catalogue, provider dispatch and the OpenAI/Anthropic streamers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.ai import models, providers
from app.ai.models import (
    MODELS,
    get_default_model_for_plan,
    get_model_by_id,
    is_valid_model,
)
from app.ai.stream_events import ProviderError, StreamFinish, TextDelta, UnknownProviderError
from app.services import anthropic_client, openai_client


async def _agen(*items):
    for item in items:
        yield item


def test_catalogue_ids_resolve_to_registered_providers():
    for model in MODELS:
        handle = providers.resolve_model(model.id)
        assert handle.provider == model.provider


def test_default_model_for_plan():
    assert get_default_model_for_plan("starter").id == "openai/gpt-5-nano"
    # Plans without an explicit default fall back to DEFAULT_AI_MODEL
    assert get_default_model_for_plan("enterprise").id == "openai/gpt-5-nano"
    assert get_model_by_id("anthropic/claude-haiku-4-5").display_name == "Claude Haiku"
    assert get_model_by_id("nope/model") is None
    assert is_valid_model("google/gemini-2.0-flash")
    assert not is_valid_model("google")


def test_default_model_setting_is_the_plan_fallback(monkeypatch):
    monkeypatch.setattr(models.settings, "default_ai_model", "anthropic/claude-haiku-4-5")
    assert get_default_model_for_plan("pro").id == "anthropic/claude-haiku-4-5"
    assert get_default_model_for_plan("starter").id == "openai/gpt-5-nano"

    monkeypatch.setattr(models.settings, "default_ai_model", "retired/model")
    assert get_default_model_for_plan("pro") == MODELS[0]


def test_resolve_model_splits_on_first_slash():
    handle = providers.resolve_model("openai/ft:gpt-5/custom")
    assert handle.provider == "openai"
    assert handle.model_name == "ft:gpt-5/custom"
    assert handle.streamer is openai_client.stream_openai_chat


@pytest.mark.parametrize("model_id", ["mistral/large", "gpt-5", "openai/", ""])
def test_resolve_model_rejects_unknown_provider(model_id):
    with pytest.raises(UnknownProviderError):
        providers.resolve_model(model_id)


def test_registering_a_provider_needs_no_dispatch_changes():
    async def streamer(model, system_prompt, messages, temperature, max_output_tokens):
        yield TextDelta(model)

    with patch.dict(providers._registry):
        providers.register_provider("acme", streamer)
        assert "acme" in providers.supported_providers()
        assert providers.resolve_model("acme/rocket").streamer is streamer

    assert "acme" not in providers.supported_providers()


@pytest.mark.asyncio
async def test_stream_chat_passes_fixed_generation_parameters():
    seen = {}

    async def streamer(model, system_prompt, messages, temperature, max_output_tokens):
        seen.update(model=model, temperature=temperature, max_output_tokens=max_output_tokens)
        yield StreamFinish()

    handle = providers.ProviderHandle(provider="acme", model_name="rocket", streamer=streamer)
    events = [e async for e in providers.stream_chat(handle, "sys", [{"role": "user", "content": "hi"}])]

    assert events == [StreamFinish()]
    assert seen == {"model": "rocket", "temperature": 0.7, "max_output_tokens": 1024}


@pytest.mark.asyncio
async def test_openai_stream_maps_chunks_and_usage():
    chunks = _agen(
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="Hi"), finish_reason=None)], usage=None),
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=None), finish_reason="stop")], usage=None),
        SimpleNamespace(choices=[], usage=SimpleNamespace(prompt_tokens=9, completion_tokens=1)),
    )
    mock_client = MagicMock()
    mock_client.chat.completions.create = AsyncMock(return_value=chunks)
    mock_client.close = AsyncMock()

    with patch.object(openai_client, "_get_client", return_value=mock_client):
        events = [
            e
            async for e in openai_client.stream_openai_chat(
                "gpt-5-nano", "Be brief.", [{"role": "user", "content": "Hello"}], 0.7, 1024
            )
        ]

    assert events == [TextDelta("Hi"), StreamFinish("stop", prompt_tokens=9, completion_tokens=1)]
    call = mock_client.chat.completions.create.call_args.kwargs
    assert call["messages"][0] == {"role": "system", "content": "Be brief."}
    assert call["messages"][-1] == {"role": "user", "content": "Hello"}
    assert call["stream"] is True
    assert call["stream_options"] == {"include_usage": True}
    mock_client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_openai_missing_key_raises(monkeypatch):
    monkeypatch.setattr(openai_client.settings, "openai_api_key", None)

    with pytest.raises(ProviderError, match="OPENAI_API_KEY missing"):
        async for _ in openai_client.stream_openai_chat("gpt-5-nano", "", [], 0.7, 1024):
            pass


class _FakeAnthropicStream:
    def __init__(self, texts, final):
        self._texts = texts
        self._final = final

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    @property
    def text_stream(self):
        return _agen(*self._texts)

    async def get_final_message(self):
        return self._final


@pytest.mark.asyncio
async def test_anthropic_stream_reads_usage_from_final_message():
    final = SimpleNamespace(stop_reason="end_turn", usage=SimpleNamespace(input_tokens=20, output_tokens=4))
    mock_client = MagicMock()
    mock_client.messages.stream = MagicMock(return_value=_FakeAnthropicStream(["Hel", "lo"], final))
    mock_client.close = AsyncMock()

    with patch.object(anthropic_client, "_get_client", return_value=mock_client):
        events = [
            e
            async for e in anthropic_client.stream_anthropic_chat(
                "claude-haiku-4-5", "Be kind.", [{"role": "user", "content": "Hi"}], 0.7, 1024
            )
        ]

    assert events == [
        TextDelta("Hel"),
        TextDelta("lo"),
        StreamFinish("end_turn", prompt_tokens=20, completion_tokens=4),
    ]
    call = mock_client.messages.stream.call_args.kwargs
    assert call["system"] == "Be kind."
    assert call["max_tokens"] == 1024


@pytest.mark.asyncio
async def test_anthropic_missing_key_raises(monkeypatch):
    monkeypatch.setattr(anthropic_client.settings, "anthropic_api_key", None)

    with pytest.raises(ProviderError, match="ANTHROPIC_API_KEY missing"):
        async for _ in anthropic_client.stream_anthropic_chat("claude-haiku-4-5", "", [], 0.7, 1024):
            pass
