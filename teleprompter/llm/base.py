"""
Base classes for LLM providers in teleprompter.
Defines the interface the runner uses to stream completions.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncGenerator, Optional


@dataclass
class StreamChunk:
    """Represents a chunk of streamed response."""
    content: str
    finish_reason: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class ModelInfo:
    """A model offered by a provider."""
    id: str
    provider: str

    @property
    def display_name(self) -> str:
        """Provider-qualified model name, e.g. ``openai/gpt-4o``."""
        return f"{self.provider}/{self.id}"


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations stream completions for a single user prompt and can list
    the models they offer.
    """

    def __init__(self, name: str, api_key: str) -> None:
        """
        Initialize the provider.

        Args:
            name: Provider name (e.g. 'openai')
            api_key: API key
        """
        self._name = name
        self._api_key = api_key

    @property
    def name(self) -> str:
        """Provider name."""
        return self._name

    @abstractmethod
    def stream(self, prompt: str, model: str) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream a completion for a single user prompt.

        Args:
            prompt: Compiled prompt text
            model: Model ID, without the provider prefix

        Yields:
            StreamChunk objects as text arrives
        """

    @abstractmethod
    async def list_models(self) -> list[ModelInfo]:
        """
        List text generation models offered by this provider.

        Returns:
            Models sorted by ID; empty if discovery fails
        """
