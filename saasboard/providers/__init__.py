"""Upstream model providers."""

from saasboard.providers.anthropic import AnthropicProvider
from saasboard.providers.base import BaseProvider, ChatChunk, ChatMessage, ChatRequest
from saasboard.providers.sse import DONE_SENTINEL, EventStreamParser, Frame

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "ChatChunk",
    "ChatMessage",
    "ChatRequest",
    "DONE_SENTINEL",
    "EventStreamParser",
    "Frame",
]
