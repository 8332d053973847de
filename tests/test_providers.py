"""Tests for the Anthropic streaming adapter, driven through httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from saasboard.core import (
    ErrorCode,
    UpstreamAuthError,
    UpstreamError,
    UpstreamUnavailableError,
)
from saasboard.providers import AnthropicProvider, ChatMessage, ChatRequest


def sse_body(*events: dict | str) -> bytes:
    lines = []
    for event in events:
        payload = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {payload}\n\n")
    return "".join(lines).encode()


def delta(text: str) -> dict:
    return {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}}


def chunked(body: bytes, size: int):
    async def stream():
        for i in range(0, len(body), size):
            yield body[i : i + size]

    return stream()


def make_provider(handler, max_retries: int = 0, timeout_seconds: float = 5) -> AnthropicProvider:
    return AnthropicProvider(
        base_url="http://anthropic.test",
        api_key="test-key",
        version="2023-06-01",
        timeout_seconds=timeout_seconds,
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def make_request() -> ChatRequest:
    return ChatRequest(
        messages=[
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello"),
            ChatMessage(role="user", content="How are you?"),
        ],
        model="claude-test",
        max_tokens=4096,
        temperature=0.7,
    )


async def collect_text(provider: AnthropicProvider) -> list[str]:
    return [chunk.content async for chunk in provider.chat_stream(make_request()) if chunk.content]


STANDARD_STREAM = sse_body(
    {"type": "message_start", "message": {"id": "msg_1"}},
    {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
    delta("Hello"),
    {"type": "ping"},
    delta(", wor"),
    delta("ld"),
    {"type": "content_block_stop", "index": 0},
    {"type": "message_delta", "delta": {"stop_reason": "end_turn"}},
    {"type": "message_stop"},
)


@pytest.mark.asyncio
@pytest.mark.parametrize("chunk_size", [1, 3, 7, 64, 4096])
async def test_streams_text_deltas_regardless_of_read_boundaries(chunk_size: int) -> None:
    provider = make_provider(
        lambda request: httpx.Response(200, content=chunked(STANDARD_STREAM, chunk_size))
    )

    assert await collect_text(provider) == ["Hello", ", wor", "ld"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_request_shape() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(200, content=STANDARD_STREAM)

    provider = make_provider(handler)
    await collect_text(provider)

    request = captured["request"]
    assert request.method == "POST"
    assert request.url.path == "/v1/messages"
    assert request.headers["x-api-key"] == "test-key"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body == {
        "model": "claude-test",
        "max_tokens": 4096,
        "messages": [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "How are you?"},
        ],
        "stream": True,
        "temperature": 0.7,
    }
    await provider.aclose()


@pytest.mark.asyncio
async def test_non_json_frames_are_skipped() -> None:
    body = sse_body(delta("a"), "{not json", "plain text", delta("b"))
    provider = make_provider(lambda request: httpx.Response(200, content=body))

    assert await collect_text(provider) == ["a", "b"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_done_sentinel_ends_stream() -> None:
    body = sse_body(delta("kept"), "[DONE]", delta("dropped"))
    provider = make_provider(lambda request: httpx.Response(200, content=body))

    assert await collect_text(provider) == ["kept"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_message_stop_ends_stream() -> None:
    body = sse_body(delta("kept"), {"type": "message_stop"}, delta("dropped"))
    provider = make_provider(lambda request: httpx.Response(200, content=body))

    assert await collect_text(provider) == ["kept"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_stream_without_deltas_yields_nothing() -> None:
    body = sse_body({"type": "message_start"}, {"type": "message_stop"})
    provider = make_provider(lambda request: httpx.Response(200, content=body))

    assert await collect_text(provider) == []
    await provider.aclose()


@pytest.mark.asyncio
async def test_stop_reason_is_reported() -> None:
    provider = make_provider(lambda request: httpx.Response(200, content=STANDARD_STREAM))

    chunks = [chunk async for chunk in provider.chat_stream(make_request())]
    assert chunks[-1].finish_reason == "end_turn"
    await provider.aclose()


@pytest.mark.asyncio
async def test_error_frame_raises_upstream_error() -> None:
    body = sse_body(
        delta("partial"),
        {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
    )
    provider = make_provider(lambda request: httpx.Response(200, content=body))

    received = []
    with pytest.raises(UpstreamError) as exc:
        async for chunk in provider.chat_stream(make_request()):
            received.append(chunk.content)

    assert received == ["partial"]
    assert exc.value.message == "Overloaded"
    await provider.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error_type", "code"),
    [
        (500, UpstreamUnavailableError, ErrorCode.UPSTREAM_UNAVAILABLE),
        (529, UpstreamUnavailableError, ErrorCode.UPSTREAM_UNAVAILABLE),
        (401, UpstreamAuthError, ErrorCode.UPSTREAM_AUTH_FAILED),
        (403, UpstreamAuthError, ErrorCode.UPSTREAM_AUTH_FAILED),
        (429, UpstreamError, ErrorCode.UPSTREAM_ERROR),
        (400, UpstreamError, ErrorCode.UPSTREAM_ERROR),
    ],
)
async def test_error_status_mapping(status, error_type, code) -> None:
    provider = make_provider(
        lambda request: httpx.Response(status, json={"error": {"message": "nope"}})
    )

    with pytest.raises(error_type) as exc:
        await collect_text(provider)

    assert exc.value.code == code
    assert exc.value.details["status"] == status
    assert "nope" in exc.value.details["body"]
    await provider.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(204),
        httpx.Response(302, headers={"Location": "https://anthropic.test/v1/messages"}),
        httpx.Response(201, content=STANDARD_STREAM),
    ],
    ids=["no-content", "redirect", "created"],
)
async def test_any_status_but_200_is_an_error(response) -> None:
    provider = make_provider(lambda request: response)

    with pytest.raises(UpstreamError) as exc:
        await collect_text(provider)

    assert exc.value.code == ErrorCode.UPSTREAM_ERROR
    assert exc.value.details["status"] == response.status_code
    await provider.aclose()


@pytest.mark.asyncio
async def test_connect_errors_are_retried_then_mapped() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    provider = make_provider(handler, max_retries=2)

    with pytest.raises(UpstreamUnavailableError):
        await collect_text(provider)

    assert calls["count"] == 3
    await provider.aclose()


@pytest.mark.asyncio
async def test_connect_retry_recovers() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, content=STANDARD_STREAM)

    provider = make_provider(handler, max_retries=1)

    assert await collect_text(provider) == ["Hello", ", wor", "ld"]
    assert calls["count"] == 2
    await provider.aclose()


@pytest.mark.asyncio
async def test_read_timeout_before_response_is_not_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ReadTimeout("timed out", request=request)

    provider = make_provider(handler, max_retries=3)

    with pytest.raises(UpstreamUnavailableError):
        await collect_text(provider)
    assert calls["count"] == 1
    await provider.aclose()


@pytest.mark.asyncio
async def test_failure_mid_stream_maps_to_upstream_error() -> None:
    async def broken_stream():
        yield sse_body(delta("first"))
        raise httpx.ReadError("connection reset")

    provider = make_provider(lambda request: httpx.Response(200, content=broken_stream()))

    received = []
    with pytest.raises(UpstreamError):
        async for chunk in provider.chat_stream(make_request()):
            received.append(chunk.content)

    assert received == ["first"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_timeout_bounds_the_whole_exchange() -> None:
    async def trickling_stream():
        for word in ("one", "two", "three", "four"):
            yield sse_body(delta(word))
            await asyncio.sleep(0.3)

    provider = make_provider(
        lambda request: httpx.Response(200, content=trickling_stream()),
        timeout_seconds=0.75,
    )

    received = []
    with pytest.raises(UpstreamUnavailableError) as exc:
        async for chunk in provider.chat_stream(make_request()):
            received.append(chunk.content)

    # Each read is well under the timeout; only the running total exceeds it
    assert received[0] == "one"
    assert "four" not in received
    assert exc.value.details == {"timeout_seconds": 0.75}
    await provider.aclose()
