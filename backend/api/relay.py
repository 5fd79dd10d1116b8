"""
Stream relay: upstream agent events → SSE frames.

Every frame is one JSON object with a ``type`` and a ``timestamp``. The relay
writes ``connected`` first, maps each upstream event to at most one frame, and
finishes with exactly one terminal frame (``done`` or ``error``) unless the
client goes away first.
"""

import datetime
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from backend.graph.state import UpstreamEvent

logger = logging.getLogger(__name__)

TERMINAL_TYPES = frozenset({"done", "error"})

# Phase markers that carry nothing the client needs
_SUPPRESSED_KINDS = frozenset({"start", "step-start", "reasoning-start", "text-start"})

# Frame types the plain (tool-less) chat stream exposes
_TEXT_ONLY_TYPES = frozenset({"chunk", "done", "error"})


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def frame(event_type: str, **fields: Any) -> dict[str, Any]:
    return {"type": event_type, **fields, "timestamp": _now()}


def sse_message(payload: dict[str, Any]) -> dict[str, str]:
    """Wrap a frame for EventSourceResponse (rendered as ``data: <json>``)."""
    return {"data": json.dumps(payload, ensure_ascii=False, default=str)}


def normalize_event(event: UpstreamEvent, include_tools: bool = True) -> dict[str, Any] | None:
    """Map one upstream event to its wire frame, or None when it is not forwarded."""
    kind = event.get("kind")
    payload = event.get("payload") or {}

    if kind in _SUPPRESSED_KINDS:
        logger.debug("%s event from agent: %s", kind, payload)
        return None

    if kind == "reasoning-delta":
        result = frame("reasoning", content=payload.get("text", ""))
    elif kind == "reasoning-finish":
        result = frame("reasoning-finish")
    elif kind == "step-finish":
        result = frame("step-finish")
    elif kind == "text-delta":
        result = frame("chunk", content=payload.get("text") or payload.get("textDelta") or "")
    elif kind == "text-finish":
        result = frame("text-finish")
    elif kind == "tool-call":
        result = frame(
            "tool-call",
            toolName=payload.get("toolName"),
            toolCallId=payload.get("toolCallId"),
            args=payload.get("args"),
        )
    elif kind == "tool-result":
        result = frame(
            "tool-result",
            toolName=payload.get("toolName"),
            toolCallId=payload.get("toolCallId"),
            result=payload.get("result"),
        )
    elif kind == "finish":
        result = frame("done", finishReason=payload.get("finishReason") or "unknown")
    elif kind == "error":
        result = frame("error", error=payload.get("error") or "Unknown error")
    else:
        logger.warning("Unknown event type from agent: %s", kind)
        result = frame("unknown", eventType=kind, raw=event)

    if not include_tools and result["type"] not in _TEXT_ONLY_TYPES:
        return None
    return result


async def relay_events(
    events: AsyncIterator[UpstreamEvent],
    is_disconnected: Callable[[], Awaitable[bool]],
    include_tools: bool = True,
) -> AsyncIterator[dict[str, str]]:
    """Yield SSE messages for one chat turn."""
    yield sse_message(frame("connected"))

    try:
        async for event in events:
            if await is_disconnected():
                logger.info("Client disconnected - stopping stream")
                return

            outgoing = normalize_event(event, include_tools)
            if outgoing is None:
                continue

            logger.debug("Relaying %s frame", outgoing["type"])
            yield sse_message(outgoing)

            if outgoing["type"] in TERMINAL_TYPES:
                logger.info("Stream finished with %s", outgoing["type"])
                return

        # Upstream ended without a finish event
        if await is_disconnected():
            logger.info("Client disconnected - stopping stream")
            return
        yield sse_message(frame("done", finishReason="unknown"))
        logger.info("Stream completed successfully")

    except Exception as exc:
        if await is_disconnected():
            logger.info("Client disconnected - stopping stream")
            return
        logger.error("Streaming error: %s", exc)
        yield sse_message(frame("error", error=str(exc) or exc.__class__.__name__))

    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
