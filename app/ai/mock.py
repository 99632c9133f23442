"""Canned streaming reply for MOCK_AI mode (demos and widget development without model costs)."""

import asyncio
import random
import re
from typing import AsyncIterator

from app.ai.stream_events import ProviderEvent, StreamFinish, TextDelta

MOCK_RESPONSE = """Thanks for reaching out! Here's what I can help you with:

**Our most popular items:**
- Lavender Oat Milk Latte ($5.50)
- House Blend Drip Coffee ($3.00)
- Fresh-baked croissants ($3.50)

We also have *seasonal specials* that change monthly. Right now we're featuring a **Maple Pecan Cold Brew** that's been getting great reviews.

You can find our full menu on our website, or feel free to ask me about anything specific. Is there something in particular you're looking for?"""

# Placeholder usage reported (and persisted) for every mock turn
MOCK_PROMPT_TOKENS = 150
MOCK_COMPLETION_TOKENS = 85

# Simulated per-token cadence, seconds
TOKEN_DELAY_MIN = 0.03
TOKEN_DELAY_JITTER = 0.02


def split_tokens(text: str) -> list[str]:
    """Split into words and whitespace runs; joining the pieces gives text back unchanged."""
    return [piece for piece in re.split(r"(\s+)", text) if piece]


async def mock_chat_stream(text: str = MOCK_RESPONSE) -> AsyncIterator[ProviderEvent]:
    for token in split_tokens(text):
        yield TextDelta(token)
        await asyncio.sleep(TOKEN_DELAY_MIN + random.random() * TOKEN_DELAY_JITTER)
    yield StreamFinish(
        finish_reason="stop",
        prompt_tokens=MOCK_PROMPT_TOKENS,
        completion_tokens=MOCK_COMPLETION_TOKENS,
    )
