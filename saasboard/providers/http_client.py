"""
httpx plumbing for the upstream adapter: client construction, connect
retries and status-to-error mapping.

Everything that leaves this module as an exception is an ``UpstreamError``.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from saasboard.core import (
    UpstreamAuthError,
    UpstreamError,
    UpstreamUnavailableError,
    get_logger,
    request_id_ctx,
)

logger = get_logger(__name__)

# The request never reached the upstream, so resending it is safe
_CONNECT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)

ERROR_BODY_SNIPPET = 300
MAX_BACKOFF_SECONDS = 1.0


def create_http_client(
    base_url: str,
    timeout_seconds: float,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Return an AsyncClient rooted at ``base_url``.

    ``timeout_seconds`` bounds each phase (connect, read, write, pool) on its
    own. ``transport`` lets tests plug in ``httpx.MockTransport``.
    """
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=httpx.Timeout(timeout_seconds),
        headers=headers or {},
        transport=transport,
    )


def _with_request_id(headers: dict[str, str] | None) -> dict[str, str]:
    merged = dict(headers or {})
    request_id = request_id_ctx.get()
    if request_id:
        merged.setdefault("X-Request-ID", request_id)
    return merged


async def send_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a streaming request and return the response with its body unread.

    Connect-level failures are retried up to ``max_retries`` times; anything
    after the upstream accepted the connection is not. The caller must
    ``aclose()`` the returned response.
    """
    kwargs["headers"] = _with_request_id(kwargs.get("headers"))
    request = client.build_request(method, url, **kwargs)

    attempt = 0
    while True:
        try:
            return await client.send(request, stream=True)
        except _CONNECT_ERRORS as exc:
            if attempt >= max_retries:
                raise UpstreamUnavailableError(details={"reason": str(exc)}) from exc
            attempt += 1
            logger.info(
                "Upstream connect failed, retrying",
                data={"attempt": attempt, "reason": str(exc)},
            )
            await asyncio.sleep(min(0.1 * attempt, MAX_BACKOFF_SECONDS))
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailableError(
                "Upstream request timed out", details={"reason": str(exc)}
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError("Upstream request failed", details={"reason": str(exc)}) from exc


def raise_for_status(response: httpx.Response) -> None:
    """
    Raise the ``UpstreamError`` matching a non-200 status; do nothing on 200.

    A streamed reply only comes with 200 OK, so redirects and other 2xx
    statuses are errors too.

    Read the body of a streamed response first so its snippet can be logged.
    """
    status = response.status_code
    if status == 200:
        return

    details = _error_details(response)
    logger.warning("Upstream HTTP error", data=details)

    if status in (401, 403):
        raise UpstreamAuthError(details=details)
    if status == 429:
        raise UpstreamError("Upstream rate limit exceeded", details=details)
    if status >= 500:
        raise UpstreamUnavailableError(details=details)
    raise UpstreamError(f"Upstream returned status {status}", details=details)


def _error_details(response: httpx.Response) -> dict[str, Any]:
    # Status, url and the head of the body; never request headers (they hold the key)
    try:
        body = response.text[:ERROR_BODY_SNIPPET]
    except httpx.ResponseNotRead:
        body = ""
    return {"status": response.status_code, "body": body, "url": str(response.request.url)}
