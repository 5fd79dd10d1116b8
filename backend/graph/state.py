from typing import Annotated, Any, Literal, TypedDict

from langchain_core.messages import AnyMessage
from langgraph.graph.message import add_messages


class AgentState(TypedDict):
    # Conversation fed to the agent node; tool messages are appended by the tools node
    messages: Annotated[list[AnyMessage], add_messages]


class HistoryMessage(TypedDict):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: str


class UpstreamEvent(TypedDict):
    kind: str
    payload: dict[str, Any]


def upstream_event(kind: str, **payload: Any) -> UpstreamEvent:
    return {"kind": kind, "payload": payload}
