"""
Anthropic Messages API adapter.

Streams ``content_block_delta`` text fragments from ``POST /v1/messages``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

from saasboard.core import UpstreamError, UpstreamUnavailableError, get_logger
from saasboard.providers.base import BaseProvider, ChatChunk, ChatRequest
from saasboard.providers.http_client import (
    create_http_client,
    raise_for_status,
    send_with_retries,
)
from saasboard.providers.sse import EventStreamParser, Frame

logger = get_logger(__name__)

MESSAGES_PATH = "/v1/messages"


class _StreamFinished(Exception):
    """Raised internally when the upstream signals the end of the message."""


class AnthropicProvider(BaseProvider):
    """Streaming client for the Anthropic Messages API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        version: str = "2023-06-01",
        timeout_seconds: float = 120.0,
        max_retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self._client = create_http_client(
            base_url,
            timeout_seconds,
            headers={
                "Content-Type": "application/json",
                "x-api-key": api_key,
                "anthropic-version": version,
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _build_payload(self, request: ChatRequest) -> dict[str, Any]:
        return {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "messages": [
                {"role": message.role, "content": message.content}
                for message in request.messages
            ],
            "stream": True,
            "temperature": request.temperature,
        }

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[ChatChunk]:
        """
        Yield reply chunks until the upstream signals the end of the message.

        ``timeout_seconds`` caps the whole exchange, retries included; httpx's
        own timeout only bounds each connect or read on its own.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        try:
            response = await asyncio.wait_for(
                send_with_retries(
                    self._client,
                    "POST",
                    MESSAGES_PATH,
                    max_retries=self.max_retries,
                    json=self._build_payload(request),
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise self._deadline_error() from exc
        try:
            if response.status_code != 200:
                await response.aread()
                raise_for_status(response)

            parser = EventStreamParser()
            byte_stream = response.aiter_bytes()
            try:
                while True:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise TimeoutError()
                    try:
                        raw = await asyncio.wait_for(byte_stream.__anext__(), timeout=remaining)
                    except StopAsyncIteration:
                        break
                    for frame in parser.feed(raw):
                        chunk = self._handle_frame(frame)
                        if chunk is not None:
                            yield chunk
                for frame in parser.close():
                    chunk = self._handle_frame(frame)
                    if chunk is not None:
                        yield chunk
            except _StreamFinished:
                return
            except TimeoutError as exc:
                raise self._deadline_error() from exc
            except httpx.TimeoutException as exc:
                raise UpstreamUnavailableError(
                    "Upstream stream timed out", details={"reason": str(exc)}
                ) from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(
                    "Upstream stream interrupted", details={"reason": str(exc)}
                ) from exc
            finally:
                await byte_stream.aclose()
        finally:
            await response.aclose()

    def _deadline_error(self) -> UpstreamUnavailableError:
        logger.warning(
            "Upstream exchange exceeded its deadline",
            data={"timeout_seconds": self.timeout_seconds},
        )
        return UpstreamUnavailableError(
            "Upstream request timed out", details={"timeout_seconds": self.timeout_seconds}
        )

    def _handle_frame(self, frame: Frame) -> ChatChunk | None:
        """Turn one frame into a chunk, None to skip, or stop the stream."""
        if frame.is_done:
            raise _StreamFinished()

        try:
            event = json.loads(frame.data)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON upstream frame", data={"frame": frame.data[:100]})
            return None
        if not isinstance(event, dict):
            return None

        event_type = event.get("type")
        if event_type == "content_block_delta":
            delta = event.get("delta") or {}
            text = delta.get("text") if isinstance(delta, dict) else None
            if isinstance(text, str) and text:
                return ChatChunk(content=text)
            return None
        if event_type == "message_delta":
            delta = event.get("delta") or {}
            stop_reason = delta.get("stop_reason") if isinstance(delta, dict) else None
            if stop_reason:
                return ChatChunk(content="", finish_reason=stop_reason)
            return None
        if event_type == "message_stop":
            raise _StreamFinished()
        if event_type == "error":
            error = event.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else None
            raise UpstreamError(
                message or "Upstream reported an error",
                details={"type": error.get("type") if isinstance(error, dict) else None},
            )
        return None
