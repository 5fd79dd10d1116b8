"""
Conversation reconciler: applies one turn's stream events to the session.

A Turn owns the placeholder assistant message. Prose and tool activity are kept
as an ordered list of segments; the placeholder content is re-rendered from
them after every event, so each tool call is tracked by its own entry instead
of by editing the message text in place.
"""

import logging
from dataclasses import dataclass
from typing import Any

from chat_client.models import Message, StreamEvent, now_iso
from chat_client.session import NO_RESPONSE_ERROR, ConversationSession

logger = logging.getLogger(__name__)

GET_TAX_DATA = "get-tax-data"
CALCULATE_DEDUCTIONS = "calculate-deductions"
GENERATE_TAX_PDF = "generate-tax-pdf"

PENDING = "pending"
RESOLVED = "resolved"

# Lifecycle frames that carry nothing to display
_LIFECYCLE_TYPES = frozenset({"reasoning", "reasoning-finish", "step-finish", "text-finish"})


@dataclass
class ToolEntry:
    tool_call_id: str
    tool_name: str
    args: Any = None
    state: str = PENDING
    rendered: str = ""


def _chf(amount: Any) -> str:
    if isinstance(amount, (int, float)):
        return f"CHF {amount:,.0f}".replace(",", "'")
    return f"CHF {amount}"


def format_pdf_result(result: dict[str, Any], base_url: str) -> str:
    if result.get("success"):
        link = f"{base_url.rstrip('/')}{result.get('downloadUrl', '')}"
        name = result.get("fileName") or "your tax return"
        return f"\n\nPDF generated successfully: [Download {name}]({link})\n\n"
    error = result.get("error") or result.get("message") or "Unknown error"
    return f"\n\nPDF generation failed: {error}\n\n"


def format_deductions_result(result: dict[str, Any]) -> str:
    lines = [
        "**Deduction Summary**",
        f"- Total deductions: {_chf(result.get('totalDeductions', 0))}",
        f"- Estimated tax savings: {_chf(result.get('estimatedTaxSavings', 0))}",
    ]
    recommendations = result.get("recommendations") or []
    if recommendations:
        lines += ["", "**Recommendations:**"]
        lines += [f"{number}. {text}" for number, text in enumerate(recommendations, start=1)]
    return "\n\n" + "\n".join(lines) + "\n\n"


class Turn:
    """State of one in-flight turn, from placeholder insertion until settled."""

    def __init__(self, session: ConversationSession, placeholder: Message, base_url: str) -> None:
        self.session = session
        self.placeholder = placeholder
        self.base_url = base_url
        self.first_chunk_loaded = False
        self.received_activity = False
        self.settled = False
        self._segments: list[str | ToolEntry] = []
        self._tools: dict[str, ToolEntry] = {}

    @property
    def tool_entries(self) -> list[ToolEntry]:
        return list(self._tools.values())

    def apply(self, event: StreamEvent) -> None:
        if self.settled:
            logger.debug("Ignoring %s event after turn settled", event.type)
            return

        if event.type == "connected":
            return
        if event.type == "done":
            self.settle()
            return
        if event.type == "error":
            self.settle(error=event.error or "Unknown error")
            return

        self.received_activity = True

        if event.type == "chunk":
            self._append_text(event.content or "")
        elif event.type == "tool-call":
            logger.info("Tool called: %s", event.tool_name)
            entry = self._entry(event.tool_call_id, event.tool_name)
            entry.args = event.args
        elif event.type == "tool-result":
            logger.info("Tool result received: %s", event.tool_name)
            entry = self._entry(event.tool_call_id, event.tool_name)
            entry.state = RESOLVED
            entry.rendered = self._handle_result(entry, event.result)
        elif event.type in _LIFECYCLE_TYPES:
            logger.debug("%s event", event.type)
        else:
            logger.warning("Unhandled stream event: %s", event.event_type or event.type)
            return

        self._render()

    def settle(self, error: str | None = None, cancelled: bool = False) -> None:
        """End the turn. Only the first call has any effect."""
        if self.settled:
            return
        self.settled = True
        self.session.is_loading = False
        self.placeholder.timestamp = now_iso()

        empty = not self.placeholder.content.strip()
        if error is not None:
            self.session.error = error
            if empty:
                self.session.remove_message(self.placeholder)
        elif empty:
            self.session.remove_message(self.placeholder)
            if not self.received_activity and not cancelled:
                self.session.error = NO_RESPONSE_ERROR

    # -- internals -----------------------------------------------------------

    def _append_text(self, content: str) -> None:
        if content.strip() and not self.first_chunk_loaded:
            self.first_chunk_loaded = True
            self.placeholder.first_chunk_loaded = True
            self.session.is_loading = False
        if self._segments and isinstance(self._segments[-1], str):
            self._segments[-1] += content
        else:
            self._segments.append(content)

    def _entry(self, tool_call_id: str | None, tool_name: str | None) -> ToolEntry:
        name = tool_name or "unknown"
        if tool_call_id is None:
            # match the latest open call of the same tool
            for entry in reversed(self._tools.values()):
                if entry.tool_name == name and entry.state == PENDING:
                    return entry
            tool_call_id = f"{name}-{len(self._tools)}"

        entry = self._tools.get(tool_call_id)
        if entry is None:
            entry = ToolEntry(tool_call_id=tool_call_id, tool_name=name)
            self._tools[tool_call_id] = entry
            self._segments.append(entry)
        return entry

    def _handle_result(self, entry: ToolEntry, result: Any) -> str:
        data = result if isinstance(result, dict) else {}

        if entry.tool_name == GET_TAX_DATA:
            if data.get("success") and data.get("data"):
                self.session.offer_tax_data(data["data"], data.get("scenario") or "single", entry.tool_call_id)
                return ""
            return f"\n\nCould not load tax data: {data.get('error') or 'Unknown error'}\n\n"

        if entry.tool_name == GENERATE_TAX_PDF:
            return format_pdf_result(data, self.base_url)

        if entry.tool_name == CALCULATE_DEDUCTIONS:
            return format_deductions_result(data)

        return f"\n\nTool {entry.tool_name} completed\n\n"

    def _render(self) -> None:
        parts = []
        for segment in self._segments:
            if isinstance(segment, str):
                parts.append(segment)
            elif segment.state == RESOLVED:
                parts.append(segment.rendered)
            elif self.session.show_tool_activity:
                parts.append(f"\n\n[Calling tool: {segment.tool_name}...]\n\n")
        self.placeholder.content = "".join(parts)
