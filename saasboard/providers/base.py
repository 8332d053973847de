"""
Base provider interface.

Defines the contract the upstream model adapter implements.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass


@dataclass
class ChatMessage:
    """A single chat message."""

    role: str  # "user", "assistant"
    content: str


@dataclass
class ChatRequest:
    """Request for a streamed chat completion."""

    messages: list[ChatMessage]
    model: str
    max_tokens: int = 4096
    temperature: float = 0.7


@dataclass
class ChatChunk:
    """A single text fragment from a streaming response."""

    content: str
    finish_reason: str | None = None


class BaseProvider(ABC):
    """
    Abstract base class for upstream model providers.

    Implementations stream text fragments for a full conversation history;
    the upstream model is stateless, so every call carries every turn.
    """

    async def aclose(self) -> None:
        """Close any underlying resources (optional)."""
        return None

    @abstractmethod
    def chat_stream(self, request: ChatRequest) -> AsyncIterator[ChatChunk]:
        """
        Stream a chat completion.

        Args:
            request: Chat request with full message history

        Yields:
            ChatChunk objects with incremental content

        Raises:
            UpstreamError: the call failed before or during streaming
        """
        ...
