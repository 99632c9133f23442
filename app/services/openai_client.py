"""OpenAI streaming client for tenants on "openai/<model>" identifiers."""

import logging
from typing import AsyncIterator

from openai import APIError, AsyncOpenAI

from app.ai.stream_events import ProviderError, ProviderEvent, StreamFinish, TextDelta
from app.core.config import settings

logger = logging.getLogger(__name__)

PROVIDER = "openai"


def _get_client() -> AsyncOpenAI:
    """Get OpenAI client, raising ProviderError if the API key is not configured."""
    if not settings.openai_api_key:
        raise ProviderError("OPENAI_API_KEY missing", provider=PROVIDER)
    # Retry policy belongs to the caller, not the SDK
    return AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)


async def stream_openai_chat(
    model: str,
    system_prompt: str,
    messages: list[dict],
    temperature: float,
    max_output_tokens: int,
) -> AsyncIterator[ProviderEvent]:
    """
    Stream a chat completion from OpenAI.

    The system prompt goes first as a system message. Usage arrives on the final chunk
    (stream_options.include_usage), which has no choices.
    """
    client = _get_client()
    openai_messages = [{"role": "system", "content": system_prompt}]
    openai_messages.extend({"role": m["role"], "content": m["content"]} for m in messages)

    logger.info("Calling OpenAI stream model=%s, message_count=%d", model, len(messages))

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    finish_reason = "stop"
    try:
        stream = await client.chat.completions.create(
            model=model,
            messages=openai_messages,
            temperature=temperature,
            max_completion_tokens=max_output_tokens,
            stream=True,
            stream_options={"include_usage": True},
        )
        async for chunk in stream:
            if chunk.choices:
                choice = chunk.choices[0]
                if choice.delta and choice.delta.content:
                    yield TextDelta(choice.delta.content)
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
            if chunk.usage is not None:
                prompt_tokens = chunk.usage.prompt_tokens
                completion_tokens = chunk.usage.completion_tokens
    except APIError as e:
        logger.warning("OpenAI stream failed model=%s: %s", model, e)
        raise ProviderError(f"OpenAI request failed: {e}", provider=PROVIDER) from e
    finally:
        await client.close()

    yield StreamFinish(
        finish_reason=finish_reason,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
    )
