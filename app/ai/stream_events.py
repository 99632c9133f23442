"""Provider-neutral events produced by every chat streamer."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class TextDelta:
    """One fragment of assistant text, in display order."""

    text: str


@dataclass(frozen=True)
class StreamFinish:
    """Last event of a successful stream, with the usage the provider reported."""

    finish_reason: str = "stop"
    prompt_tokens: int | None = None
    completion_tokens: int | None = None

    @property
    def total_tokens(self) -> int | None:
        if self.prompt_tokens is None and self.completion_tokens is None:
            return None
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)


ProviderEvent = Union[TextDelta, StreamFinish]


class ProviderError(Exception):
    """Opening or reading a provider stream failed (network, auth, quota, provider error)."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class UnknownProviderError(ProviderError):
    """Model identifier names a provider that is not registered."""
