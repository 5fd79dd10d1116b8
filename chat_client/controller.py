import logging
from contextlib import aclosing
from typing import Any

from chat_client.errors import ChatClientError
from chat_client.reconciler import Turn
from chat_client.session import ConversationSession
from chat_client.transport import ApiClient, EventStream

logger = logging.getLogger(__name__)


def _extraction_summary(result: dict[str, Any]) -> str:
    pages = result.get("numPages")
    lines = [f"Uploaded document: {result.get('fileName', 'unknown')}" + (f" ({pages} pages)" if pages else "")]

    extracted = result.get("extractedData") or {}
    fields = {
        "Employment income": (extracted.get("income") or {}).get("employment"),
        "Pension contributions": (extracted.get("deductions") or {}).get("pillar3a"),
        "Healthcare expenses": (extracted.get("deductions") or {}).get("healthcareExpenses"),
    }
    found = [f"- {label}: CHF {value}" for label, value in fields.items() if value is not None]
    if found:
        lines += ["Extracted values:", *found]
    else:
        lines.append("No tax values could be extracted automatically.")
    return "\n".join(lines)


class ChatController:
    """Drives turns against the API and keeps the session consistent."""

    def __init__(self, api: ApiClient, session: ConversationSession | None = None, use_tools: bool = True) -> None:
        self.api = api
        self.session = session or ConversationSession()
        self.use_tools = use_tools
        self._stream: EventStream | None = None
        self._turn: Turn | None = None

    @property
    def busy(self) -> bool:
        return self._turn is not None

    async def send(self, text: str) -> Turn | None:
        if not text.strip() or self.busy or self.session.is_loading:
            return None

        history = self.session.history()
        self.session.add_message("user", text)
        self.session.error = None
        self.session.is_loading = True

        turn = Turn(self.session, self.session.add_placeholder(), base_url=self.api.base_url)
        outgoing = self.session.wrap_outgoing(text)
        if self.use_tools:
            stream = self.api.stream_message_with_tools(outgoing, history)
        else:
            stream = self.api.stream_message(outgoing, history)
        self._stream, self._turn = stream, turn

        try:
            async with aclosing(aiter(stream)) as events:
                async for event in events:
                    turn.apply(event)
        except ChatClientError as exc:
            logger.error("Chat stream failed: %s", exc)
            turn.settle(error=str(exc))
        finally:
            turn.settle(cancelled=stream.cancelled)
            if self._turn is turn:
                self._stream = self._turn = None
        return turn

    def stop(self) -> None:
        """Stop listening to the in-flight turn."""
        if self._stream is None or self._turn is None:
            return
        self._stream.cancel()
        self._turn.settle(cancelled=True)
        # the old request may stay blocked on its next read
        self._stream = self._turn = None

    def clear(self) -> None:
        self.stop()
        self.session.clear()

    def dismiss_error(self) -> None:
        self.session.dismiss_error()

    def confirm_tax_data(self):
        return self.session.confirm_tax_data()

    def cancel_tax_data(self):
        return self.session.cancel_tax_data()

    async def upload_pdf(self, file_name: str, content: bytes, content_type: str = "application/pdf") -> dict[str, Any] | None:
        try:
            result = await self.api.upload_pdf(file_name, content, content_type)
        except ChatClientError as exc:
            logger.error("Upload error: %s", exc)
            self.session.error = str(exc)
            return None

        if result.get("success"):
            self.session.add_message("system", _extraction_summary(result))
        else:
            self.session.error = result.get("error") or "Failed to extract PDF"
        return result

    async def download_recommendations_pdf(self) -> bytes | None:
        messages = [m for m in self.session.history() if m["content"].strip()]
        try:
            return await self.api.download_ai_recommendations_pdf(messages, self.session.tax_data)
        except ChatClientError as exc:
            logger.error("Failed to download AI recommendations PDF: %s", exc)
            self.session.error = str(exc)
            return None
