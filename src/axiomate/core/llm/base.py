"""Protocol client contract and the shared HTTP plumbing behind it.

Vendor clients subclass HTTPProtocolClient and supply request building and
response parsing; retries, timeouts and cancellation live here so both
wire formats behave the same way.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, TypeVar, runtime_checkable

import httpx

from axiomate.core.llm.cancel import CancellationToken
from axiomate.core.llm.types import (
    ChatMessage,
    ChatResult,
    RequestOptions,
    StreamDelta,
    ToolSchema,
)
from axiomate.errors import ProtocolError, StreamAbortedError, TransportError
from axiomate.logging import get_logger

log = get_logger("llm")

T = TypeVar("T")


@dataclass
class ClientConfig:
    """Connection settings for one model endpoint.

    Attributes:
        api_key: Credential; local endpoints may not need one
        model: Model name sent on the wire
        base_url: Endpoint root (already including any /v1); None = vendor default
        timeout_ms: Per-attempt timeout
        max_retries: Total attempts for retryable failures
        max_tokens: Completion budget for vendors that require one
        thinking: User asked for reasoning output
        supports_thinking: Model can produce reasoning output
        thinking_params: Extra body fields for the current thinking toggle
        retry_base_delay: Backoff base in seconds; attempt n waits base * 2**n
    """

    api_key: str | None
    model: str
    base_url: str | None = None
    timeout_ms: int = 60_000
    max_retries: int = 3
    max_tokens: int = 4096
    thinking: bool = False
    supports_thinking: bool = False
    thinking_params: dict[str, Any] | None = None
    retry_base_delay: float = 1.0

    @property
    def thinking_enabled(self) -> bool:
        return self.thinking and self.supports_thinking


@runtime_checkable
class ProtocolClient(Protocol):
    """Vendor-neutral chat interface used by the orchestrator."""

    @property
    def model(self) -> str:
        """The model identifier being used."""
        ...

    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None = None,
        options: RequestOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> ChatResult:
        """Single-shot completion."""
        ...

    def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None = None,
        options: RequestOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamDelta]:
        """Streamed completion ending in exactly one terminal delta."""
        ...


_EOF = object()


async def _next_line(lines: AsyncIterator[str]) -> Any:
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return _EOF


class HTTPProtocolClient:
    """Base class for clients talking JSON over HTTP POST."""

    vendor: ClassVar[str] = ""
    default_base_url: ClassVar[str] = ""
    endpoint: ClassVar[str] = ""

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Endpoint and retry settings
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.config = config
        self._transport = transport

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def url(self) -> str:
        base = (self.config.base_url or self.default_base_url).rstrip("/")
        return f"{base}{self.endpoint}"

    # -- vendor hooks ------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _build_body(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None,
        options: RequestOptions | None,
        stream: bool,
    ) -> dict[str, Any]:
        raise NotImplementedError

    def _parse_response(self, data: dict[str, Any]) -> ChatResult:
        raise NotImplementedError

    def _parse_stream(self, lines: AsyncIterator[str]) -> AsyncIterator[StreamDelta]:
        raise NotImplementedError

    # -- public API --------------------------------------------------------

    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None = None,
        options: RequestOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> ChatResult:
        """Send a non-streamed request and normalize the reply.

        Raises:
            TransportError: Network failure after all attempts
            ProtocolError: HTTP status >= 400
            EmptyResponseError: No choices/content in a successful reply
            StreamAbortedError: `cancel` fired before the reply arrived
        """
        if cancel is not None and cancel.cancelled:
            raise StreamAbortedError()

        body = self._build_body(messages, tools, options, stream=False)
        aborted = asyncio.Event()
        if cancel is not None:
            cancel.add_listener(aborted.set)
        try:
            async with self._client() as client:

                async def attempt() -> dict[str, Any]:
                    response = await self._send(client, body, stream=False)
                    try:
                        return response.json()
                    except ValueError as e:
                        raise ProtocolError(
                            self.vendor, response.status_code, "Invalid JSON", response.text
                        ) from e

                data = await self._race(self._with_retries(attempt), aborted)
        finally:
            if cancel is not None:
                cancel.remove_listener(aborted.set)
        return self._parse_response(data)

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None = None,
        options: RequestOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamDelta]:
        """Stream a reply as normalized deltas.

        Opening the stream is retried like chat(); once deltas flow, errors
        end the stream. Firing `cancel` aborts the HTTP request and raises
        StreamAbortedError from the consumer's next iteration.
        """
        if cancel is not None and cancel.cancelled:
            raise StreamAbortedError()

        body = self._build_body(messages, tools, options, stream=True)
        aborted = asyncio.Event()
        if cancel is not None:
            cancel.add_listener(aborted.set)

        client = self._client()
        response: httpx.Response | None = None
        try:

            async def attempt() -> httpx.Response:
                return await self._send(client, body, stream=True)

            response = await self._race(self._with_retries(attempt), aborted)
            lines = self._guarded_lines(response, aborted)
            async for delta in self._parse_stream(lines):
                yield delta
        finally:
            if cancel is not None:
                cancel.remove_listener(aborted.set)
            if response is not None:
                await response.aclose()
            await client.aclose()

    # -- plumbing ----------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.config.timeout_ms / 1000)
        if self._transport is not None:
            return httpx.AsyncClient(timeout=timeout, transport=self._transport)
        return httpx.AsyncClient(timeout=timeout)

    async def _send(
        self,
        client: httpx.AsyncClient,
        body: dict[str, Any],
        stream: bool,
    ) -> httpx.Response:
        request = client.build_request("POST", self.url, json=body, headers=self._headers())
        try:
            response = await client.send(request, stream=stream)
        except httpx.TransportError as e:
            raise TransportError(f"{self.vendor} request failed: {e}") from e

        if response.status_code >= 400:
            if stream:
                await response.aread()
                await response.aclose()
            raise ProtocolError(
                self.vendor, response.status_code, response.reason_phrase, response.text
            )
        return response

    async def _with_retries(self, attempt: Callable[[], Awaitable[T]]) -> T:
        """Run `attempt`, retrying transport failures and 5xx responses."""
        attempts = max(1, self.config.max_retries)
        for n in range(attempts):
            try:
                return await attempt()
            except (TransportError, ProtocolError) as e:
                retryable = isinstance(e, TransportError) or e.status >= 500
                if not retryable or n == attempts - 1:
                    raise
                delay = self.config.retry_base_delay * (2**n)
                log.warning(
                    "%s attempt %d/%d failed (%s); retrying in %.1fs",
                    self.vendor, n + 1, attempts, e, delay,
                )
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    @staticmethod
    async def _race(operation: Awaitable[T], aborted: asyncio.Event) -> T:
        """Await `operation` unless `aborted` fires first."""
        task = asyncio.ensure_future(operation)
        if aborted.is_set():
            task.cancel()
            raise StreamAbortedError()
        waiter = asyncio.ensure_future(aborted.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if aborted.is_set():
            task.cancel()
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                log.debug("Discarding result of aborted request: %r", task.exception())
            raise StreamAbortedError()

        waiter.cancel()
        return task.result()

    async def _guarded_lines(
        self,
        response: httpx.Response,
        aborted: asyncio.Event,
    ) -> AsyncIterator[str]:
        lines = response.aiter_lines()
        while True:
            line = await self._race(_next_line(lines), aborted)
            if line is _EOF:
                return
            yield line
