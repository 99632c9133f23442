"""Anthropic streaming client for tenants on "anthropic/<model>" identifiers."""

import logging
from typing import AsyncIterator

from anthropic import APIError, AsyncAnthropic

from app.ai.stream_events import ProviderError, ProviderEvent, StreamFinish, TextDelta
from app.core.config import settings

logger = logging.getLogger(__name__)

PROVIDER = "anthropic"


def _get_client() -> AsyncAnthropic:
    """Get Anthropic client, raising ProviderError if the API key is not configured."""
    if not settings.anthropic_api_key:
        raise ProviderError("ANTHROPIC_API_KEY missing", provider=PROVIDER)
    return AsyncAnthropic(api_key=settings.anthropic_api_key, max_retries=0)


async def stream_anthropic_chat(
    model: str,
    system_prompt: str,
    messages: list[dict],
    temperature: float,
    max_output_tokens: int,
) -> AsyncIterator[ProviderEvent]:
    """Stream a chat completion from Anthropic; usage and stop_reason come from the final message."""
    client = _get_client()
    anthropic_messages = [{"role": m["role"], "content": m["content"]} for m in messages]

    logger.info("Calling Anthropic stream model=%s, message_count=%d", model, len(messages))

    try:
        async with client.messages.stream(
            model=model,
            system=system_prompt,
            messages=anthropic_messages,
            temperature=temperature,
            max_tokens=max_output_tokens,
        ) as stream:
            async for text in stream.text_stream:
                if text:
                    yield TextDelta(text)
            final = await stream.get_final_message()
    except APIError as e:
        logger.warning("Anthropic stream failed model=%s: %s", model, e)
        raise ProviderError(f"Anthropic request failed: {e}", provider=PROVIDER) from e
    finally:
        await client.close()

    yield StreamFinish(
        finish_reason=final.stop_reason or "stop",
        prompt_tokens=final.usage.input_tokens,
        completion_tokens=final.usage.output_tokens,
    )
