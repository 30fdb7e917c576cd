"""Abstract base for all streaming text-generation providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from thinktank.models import PromptMessages


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def split_system(messages: PromptMessages) -> tuple[str, PromptMessages]:
    """Separate system messages from the chat turns.

    For SDKs that take the system prompt as its own parameter.
    """
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    chat = [m for m in messages if m["role"] != "system"]
    return system, chat


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openai', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    def stream_completion(
        self,
        messages: PromptMessages,
        max_tokens: int,
        temperature: float,
    ) -> AsyncIterator[str]:
        """Stream the completion for ``messages`` as text fragments.

        Implementations are async generators. Closing the generator early
        (``aclose()``) must release the underlying HTTP stream.

        Args:
            messages: OpenAI-style role/content dicts.
            max_tokens: Output token budget for this call.
            temperature: Sampling temperature.

        Yields:
            Non-empty text fragments in the order they were produced.

        Raises:
            ProviderError: On API failure, timeout, or an interrupted stream.
        """
        ...

    async def generate(self, messages: PromptMessages, max_tokens: int, temperature: float = 0.7) -> str:
        """Collect a full completion. Used by health checks, not by discussions."""
        parts = [f async for f in self.stream_completion(messages, max_tokens, temperature)]
        return "".join(parts)
