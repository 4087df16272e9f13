"""Interface for the script capability: chat-style text generation."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMMessage:
    """One chat turn sent to the model."""

    role: str  # system | user | assistant
    content: str

    @classmethod
    def system(cls, content: str) -> "LLMMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "LLMMessage":
        return cls(role="user", content=content)


@dataclass
class LLMResponse:
    """Text returned by the model plus accounting."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str | None = None
    raw_response: dict[str, Any] | None = None

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)

    @property
    def truncated(self) -> bool:
        """True when the model stopped because it hit ``max_tokens``."""
        return self.finish_reason == "length"


class LLMProvider(ABC):
    """Writes locations, screenplays and cast lists for the screenwriter.

    Each screenwriter step is a single request/response exchange, so the
    interface has no job handle; failures raise ``ProviderError``.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Run one chat completion.

        With ``json_mode`` the provider asks the model for a single JSON
        object; parsing it is left to the caller.
        """

    async def health_check(self) -> bool:
        return True
