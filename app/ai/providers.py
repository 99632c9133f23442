"""Provider dispatch for "<provider>/<model-name>" identifiers.

Each provider registers one streamer with the uniform signature
(model, system_prompt, messages, temperature, max_output_tokens) -> AsyncIterator[ProviderEvent].
Adding a provider means registering a streamer; the dispatcher never branches on names.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from app.ai.stream_events import ProviderEvent, UnknownProviderError
from app.core.config import settings
from app.services.anthropic_client import stream_anthropic_chat
from app.services.gemini_client import stream_gemini_chat
from app.services.openai_client import stream_openai_chat

logger = logging.getLogger(__name__)

Streamer = Callable[[str, str, list[dict], float, int], AsyncIterator[ProviderEvent]]

_registry: dict[str, Streamer] = {
    "openai": stream_openai_chat,
    "anthropic": stream_anthropic_chat,
    "google": stream_gemini_chat,
}


@dataclass(frozen=True)
class ProviderHandle:
    provider: str
    model_name: str
    streamer: Streamer


def register_provider(name: str, streamer: Streamer) -> None:
    _registry[name] = streamer


def supported_providers() -> list[str]:
    return sorted(_registry)


def resolve_model(model_id: str) -> ProviderHandle:
    """Split on the first "/" and look up the provider; unknown prefixes raise UnknownProviderError."""
    provider, _, model_name = model_id.partition("/")
    streamer = _registry.get(provider)
    if streamer is None or not model_name:
        raise UnknownProviderError(f"Unknown AI provider: {provider}", provider=provider)
    return ProviderHandle(provider=provider, model_name=model_name, streamer=streamer)


def stream_chat(handle: ProviderHandle, system_prompt: str, messages: list[dict]) -> AsyncIterator[ProviderEvent]:
    """
    Open a token stream for messages (history window plus the new user message last).

    Temperature and max output tokens are fixed for every tenant. Failures surface as
    ProviderError from the iterator; nothing is retried here.
    """
    logger.debug(
        "Dispatching chat provider=%s model=%s message_count=%d",
        handle.provider,
        handle.model_name,
        len(messages),
    )
    return handle.streamer(
        handle.model_name,
        system_prompt,
        messages,
        settings.chat_temperature,
        settings.chat_max_output_tokens,
    )
