"""Gemini streaming client for tenants on "google/<model>" identifiers.

Uses GEMINI_API_KEY. On 429 RESOURCE_EXHAUSTED a module-level cooldown is set and
every call during the cooldown fails fast with ProviderError instead of hitting the API.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

from google import genai
from google.genai import errors as genai_errors

from app.ai.stream_events import ProviderError, ProviderEvent, StreamFinish, TextDelta
from app.core.config import settings

logger = logging.getLogger(__name__)

PROVIDER = "google"

# Fallback cooldown when the 429 carries no RetryInfo
QUOTA_COOLDOWN_SECONDS = 60

# Cooldown after 429 RESOURCE_EXHAUSTED; skip all Gemini calls until this time
_quota_cooldown_until: Optional[datetime] = None


def _is_quota_error(exc: BaseException) -> bool:
    """True if the exception is a 429 / RESOURCE_EXHAUSTED from the Gemini API."""
    if not isinstance(exc, genai_errors.ClientError):
        return False
    if getattr(exc, "code", None) == 429:
        return True
    status = getattr(exc, "status", None)
    if status and "RESOURCE_EXHAUSTED" in str(status).upper():
        return True
    return False


def _extract_retry_delay_seconds(exc: BaseException) -> Optional[int]:
    """
    Parse RetryInfo from error details if present.
    Returns delay in seconds, or None if not found.
    """
    details = getattr(exc, "details", None)
    if not details or not isinstance(details, dict):
        return None
    err = details.get("error", details)
    if not isinstance(err, dict):
        return None
    raw_list = err.get("details") if isinstance(err.get("details"), list) else None
    if not raw_list:
        return None
    for item in raw_list:
        if not isinstance(item, dict):
            continue
        if item.get("@type") == "type.googleapis.com/google.rpc.RetryInfo":
            delay_str = item.get("retryDelay")
            if delay_str is None:
                continue
            # Format is often "34s" or "60.123s"
            match = re.match(r"^(\d+(?:\.\d+)?)\s*s", str(delay_str).strip())
            if match:
                return int(float(match.group(1)))
    return None


def _should_skip_due_to_quota() -> bool:
    """True if we are still in the quota cooldown window."""
    global _quota_cooldown_until
    if _quota_cooldown_until is None:
        return False
    if datetime.now(timezone.utc) >= _quota_cooldown_until:
        _quota_cooldown_until = None
        return False
    return True


def _get_client() -> genai.Client:
    """Get Gemini client, raising ProviderError if the API key is not configured."""
    if not settings.gemini_api_key:
        raise ProviderError("GEMINI_API_KEY missing", provider=PROVIDER)
    return genai.Client(api_key=settings.gemini_api_key)


def _to_contents(messages: list[dict]) -> list[dict]:
    """Gemini calls the assistant role "model"."""
    return [
        {
            "role": "model" if m["role"] == "assistant" else "user",
            "parts": [{"text": m["content"]}],
        }
        for m in messages
    ]


def _finish_reason_name(reason) -> str:
    name = getattr(reason, "name", None) or str(reason)
    return name.lower()


async def stream_gemini_chat(
    model: str,
    system_prompt: str,
    messages: list[dict],
    temperature: float,
    max_output_tokens: int,
) -> AsyncIterator[ProviderEvent]:
    """
    Stream a chat completion from Gemini.

    Yields TextDelta for every non-empty chunk, then one StreamFinish with the usage
    from the last usage_metadata seen. Raises ProviderError on quota, cooldown or SDK errors.
    """
    global _quota_cooldown_until

    if _should_skip_due_to_quota():
        logger.debug("Skipping Gemini chat call due to recent quota exceeded; still in cooldown")
        raise ProviderError("Gemini quota exceeded; try again shortly", provider=PROVIDER)

    client = _get_client()
    logger.info("Calling Gemini stream model=%s, message_count=%d", model, len(messages))

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    finish_reason = "stop"
    try:
        stream = await client.aio.models.generate_content_stream(
            model=model,
            contents=_to_contents(messages),
            config=genai.types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            ),
        )
        async for chunk in stream:
            text = chunk.text
            if text:
                yield TextDelta(text)
            usage = getattr(chunk, "usage_metadata", None)
            if usage is not None:
                prompt_tokens = usage.prompt_token_count
                completion_tokens = usage.candidates_token_count
            candidates = getattr(chunk, "candidates", None) or []
            if candidates and candidates[0].finish_reason:
                finish_reason = _finish_reason_name(candidates[0].finish_reason)
    except genai_errors.ClientError as e:
        if _is_quota_error(e):
            retry_sec = _extract_retry_delay_seconds(e)
            cooldown_sec = retry_sec if retry_sec is not None else QUOTA_COOLDOWN_SECONDS
            _quota_cooldown_until = datetime.now(timezone.utc) + timedelta(seconds=cooldown_sec)
            logger.warning(
                "Gemini chat quota exceeded (429 RESOURCE_EXHAUSTED); model=%s cooldown=%s s retryDelay=%s",
                model,
                cooldown_sec,
                retry_sec,
            )
            raise ProviderError("Gemini quota exceeded; try again shortly", provider=PROVIDER) from e
        raise ProviderError(f"Gemini request failed: {e}", provider=PROVIDER) from e
    except genai_errors.APIError as e:
        raise ProviderError(f"Gemini request failed: {e}", provider=PROVIDER) from e

    logger.info(
        "Gemini stream finished model=%s finish_reason=%s prompt_tokens=%s completion_tokens=%s",
        model,
        finish_reason,
        prompt_tokens,
        completion_tokens,
    )
    yield StreamFinish(
        finish_reason=finish_reason,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
    )
