import logging
from collections.abc import AsyncIterator, Iterable, Sequence

from backend.graph.state import HistoryMessage, UpstreamEvent

logger = logging.getLogger(__name__)


class ScriptedEventSource:
    """In-memory event source that replays a fixed list of upstream events.

    ``fail_with`` is raised once the script is exhausted, which simulates a
    model or tool failure mid-stream. Calls are recorded for assertions.
    """

    def __init__(
        self,
        events: Iterable[UpstreamEvent] = (),
        reply: str = "",
        fail_with: Exception | None = None,
    ) -> None:
        self.events = list(events)
        self.reply = reply
        self.fail_with = fail_with
        self.calls: list[dict] = []
        self.closed = False

    async def generate(self, message: str, history: Sequence[HistoryMessage] = ()) -> str:
        self.calls.append({"message": message, "history": list(history), "stream": False})
        if self.fail_with is not None:
            raise self.fail_with
        return self.reply

    async def stream_events(
        self,
        message: str,
        history: Sequence[HistoryMessage] = (),
        with_tools: bool = True,
    ) -> AsyncIterator[UpstreamEvent]:
        self.calls.append({"message": message, "history": list(history), "stream": True, "tools": with_tools})
        try:
            for event in self.events:
                yield event
            if self.fail_with is not None:
                raise self.fail_with
        finally:
            self.closed = True
            logger.debug("Scripted stream closed")
