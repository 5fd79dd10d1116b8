"""Client-side data model: stream events, chat messages, pending tool data."""

import datetime
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class StreamEvent(BaseModel):
    """One parsed SSE frame. Unknown extra fields are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: str
    content: str | None = None
    tool_name: str | None = None
    tool_call_id: str | None = None
    args: Any = None
    result: Any = None
    error: str | None = None
    finish_reason: str | None = None
    event_type: str | None = None
    raw: Any = None
    timestamp: str | None = None


@dataclass(eq=False)
class Message:
    role: str
    content: str
    timestamp: str = field(default_factory=now_iso)
    first_chunk_loaded: bool = False

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass
class PendingToolData:
    data: dict[str, Any]
    scenario: str
    tool_call_id: str | None = None
