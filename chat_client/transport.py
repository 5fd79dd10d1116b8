"""
Transport client for the Tax-GPT API.

Streaming endpoints answer with SSE frames of the form ``data: <json>\\n\\n``.
SSEFrameParser turns arbitrarily chunked bytes into StreamEvents; EventStream
wraps one streaming request as a cancellable async iterator.
"""

import codecs
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import ValidationError

from chat_client.errors import StreamError, TransportError
from chat_client.models import StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000"

_FRAME_SEPARATOR = "\n\n"
_DATA_PREFIX = "data:"


class SSEFrameParser:
    """Incremental SSE framing. Keeps the trailing partial frame between feeds."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, data: bytes) -> list[StreamEvent]:
        self._buffer += self._decoder.decode(data)
        self._buffer = self._buffer.replace("\r\n", "\n")

        *frames, self._buffer = self._buffer.split(_FRAME_SEPARATOR)

        events = []
        for frame in frames:
            event = self._parse_frame(frame)
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def _parse_frame(frame: str) -> StreamEvent | None:
        data_lines = []
        for line in frame.split("\n"):
            if line.startswith(_DATA_PREFIX):
                value = line[len(_DATA_PREFIX):]
                data_lines.append(value[1:] if value.startswith(" ") else value)
        if not data_lines:
            # comments and keep-alive pings
            return None

        payload = "\n".join(data_lines)
        try:
            return StreamEvent.model_validate(json.loads(payload))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Failed to parse SSE message: %s (%r)", exc, payload[:200])
            return None


class EventStream:
    """
    One streaming chat request.

    Iterating opens the request and yields events in arrival order. ``done``
    ends iteration; ``error`` is yielded and then StreamError is raised. After
    ``cancel()`` no further events are delivered.
    """

    def __init__(self, client: httpx.AsyncClient, url: str, body: dict[str, Any]) -> None:
        self._client = client
        self._url = url
        self._body = body
        self._cancelled = False
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if not self._cancelled:
            logger.info("SSE stream closed")
        self._cancelled = True

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        if self._started:
            raise RuntimeError("EventStream can only be iterated once")
        self._started = True
        return self._events()

    async def _events(self) -> AsyncIterator[StreamEvent]:
        parser = SSEFrameParser()
        try:
            async with self._client.stream("POST", self._url, json=self._body) as response:
                if not response.is_success:
                    raise TransportError(
                        f"HTTP error! status: {response.status_code}",
                        status_code=response.status_code,
                    )

                async for data in response.aiter_bytes():
                    if self._cancelled:
                        return
                    for event in parser.feed(data):
                        yield event
                        if self._cancelled or event.type == "done":
                            return
                        if event.type == "error":
                            raise StreamError(event.error or "Unknown error")
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc


class ApiClient:
    """Async client for every Tax-GPT endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        # streamed responses may stay silent for a long time between frames
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, read=None))

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api{path}"

    def download_url(self, relative: str) -> str:
        """Absolute URL for a server-relative path such as ``/downloads/x.pdf``."""
        if relative.startswith(("http://", "https://")):
            return relative
        if not relative.startswith("/"):
            relative = "/" + relative
        return f"{self.base_url}{relative}"

    @staticmethod
    def _chat_body(message: str, history: list[dict[str, Any]]) -> dict[str, Any]:
        return {"message": message, "conversationHistory": list(history)}

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            message = f"HTTP error! status: {response.status_code}"
            try:
                detail = response.json()
            except ValueError:
                detail = None
            if isinstance(detail, dict) and detail.get("error"):
                message = str(detail["error"])
            raise TransportError(message, status_code=response.status_code)
        return response

    # -- streaming chat ------------------------------------------------------

    def stream_message_with_tools(self, message: str, history: list[dict[str, Any]]) -> EventStream:
        return EventStream(self._client, self._url("/chat/stream-with-tools"), self._chat_body(message, history))

    def stream_message(self, message: str, history: list[dict[str, Any]]) -> EventStream:
        return EventStream(self._client, self._url("/chat/stream"), self._chat_body(message, history))

    # -- plain JSON endpoints ------------------------------------------------

    async def send_message(self, message: str, history: list[dict[str, Any]]) -> dict[str, Any]:
        response = await self._send("POST", "/chat", json=self._chat_body(message, history))
        return response.json()

    async def generate_form(self, tax_data: dict[str, Any]) -> dict[str, Any]:
        response = await self._send("POST", "/chat/generate-form", json={"taxData": tax_data})
        return response.json()

    async def get_tax_data(self, scenario: str = "single") -> dict[str, Any]:
        response = await self._send("GET", "/tax-data", params={"scenario": scenario})
        return response.json()

    async def get_scenarios(self) -> list[dict[str, Any]]:
        response = await self._send("GET", "/tax-data/scenarios")
        return response.json()["scenarios"]

    async def upload_pdf(self, file_name: str, content: bytes, content_type: str = "application/pdf") -> dict[str, Any]:
        response = await self._send("POST", "/upload/pdf", files={"file": (file_name, content, content_type)})
        return response.json()

    # -- PDF downloads -------------------------------------------------------

    async def download_ai_recommendations_pdf(
        self,
        messages: list[dict[str, Any]],
        tax_data: dict[str, Any] | None = None,
    ) -> bytes:
        body: dict[str, Any] = {"messages": list(messages)}
        if tax_data is not None:
            body["taxData"] = tax_data
        response = await self._send("POST", "/pdf/generate-ai-recommendations", json=body)
        return response.content

    async def download_tax_return_pdf(self, tax_data: dict[str, Any]) -> bytes:
        response = await self._send("POST", "/pdf/generate-tax-return", json={"taxData": tax_data})
        return response.content
