"""
Agent Event Source for the Canton Zurich tax assistant.

Any object with ``generate`` and ``stream_events`` (see AgentEventSource) can
feed the stream relay. The production adapter runs the LangGraph tool loop and
translates its "messages"/"updates" stream into upstream events:

  start → step-start → [reasoning-start → reasoning-delta* → reasoning-finish]
        → [text-start → text-delta* → text-finish] → tool-call* → step-finish
        → tool-result* → step-start → ... → finish
"""

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AnyMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.tools import BaseTool

from backend.graph.graph import AGENT_NODE, TOOLS_NODE, compile_graph
from backend.graph.state import HistoryMessage, UpstreamEvent, upstream_event

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a knowledgeable Swiss tax assistant specialized in Canton Zurich tax regulations.

Your role is to:
1. Help users prepare their annual tax return (Steuererklärung) for Canton Zurich
2. Guide them through the tax filing process with clear, step-by-step questions
3. Provide information about deductions, allowances, and tax optimization strategies
4. Explain Swiss tax concepts in simple terms
5. Extract and analyze data from uploaded tax documents (Lohnausweis, receipts, etc.)

Key areas you should cover:
- Income declaration (employment, self-employment, investments, rental income)
- Deductions (professional expenses, healthcare, pension contributions, childcare, education)
- Wealth and assets declaration
- Canton Zurich specific tax rates and allowances
- Pillar 2 and 3a pension contributions
- Municipality-specific regulations

Important guidelines:
- Always ask clarifying questions before making assumptions
- Provide accurate information based on current Swiss tax law
- Be conversational and friendly, but professional
- When uncertain, clearly state limitations and suggest consulting a tax advisor
- Focus on Canton Zurich regulations, but mention federal tax when relevant
- Use English for the conversation
- Always use Markdown formatting for output

Available tools:
- Use get-tax-data when the user asks to load their tax data, see their tax information, or retrieve tax details
- Use calculate-deductions when the user wants to know potential deductions or optimize their tax situation
- Use generate-tax-pdf when the user wants to generate, create, or download a PDF of their tax return summary

When you use get-tax-data, explain that you've retrieved their tax data and ask them to confirm whether
they want to use this data for the conversation.

Start conversations by understanding the user's tax situation, then guide them through relevant questions."""

_ROLE_TO_MESSAGE = {
    "user": HumanMessage,
    "assistant": AIMessage,
    "system": SystemMessage,
}


class AgentEventSource(Protocol):
    async def generate(self, message: str, history: Sequence[HistoryMessage] = ()) -> str: ...

    def stream_events(
        self,
        message: str,
        history: Sequence[HistoryMessage] = (),
        with_tools: bool = True,
    ) -> AsyncIterator[UpstreamEvent]: ...


def build_messages(message: str, history: Sequence[HistoryMessage] = ()) -> list[BaseMessage]:
    """System prompt, then prior turns, then the current user message."""
    messages: list[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
    for entry in history:
        content = (entry.get("content") or "").strip()
        message_cls = _ROLE_TO_MESSAGE.get(entry.get("role", ""))
        if not content or message_cls is None:
            continue
        messages.append(message_cls(content=content))
    messages.append(HumanMessage(content=message))
    return messages


def _split_content(chunk: BaseMessage) -> tuple[str, str]:
    """Return (text, reasoning) carried by a model chunk."""
    text_parts: list[str] = []
    reasoning_parts: list[str] = []

    content = chunk.content
    if isinstance(content, str):
        text_parts.append(content)
    else:
        for block in content:
            if isinstance(block, str):
                text_parts.append(block)
            elif block.get("type") == "text":
                text_parts.append(block.get("text", ""))
            elif block.get("type") == "thinking":
                reasoning_parts.append(block.get("thinking", ""))

    extra = chunk.additional_kwargs
    reasoning = extra.get("reasoning_content") or extra.get("reasoning")
    if isinstance(reasoning, str):
        reasoning_parts.append(reasoning)

    return "".join(text_parts), "".join(reasoning_parts)


def tool_result_payload(message: ToolMessage) -> Any:
    """Structured tool output: the artifact when present, else decoded content."""
    if message.status == "error":
        return {"success": False, "error": str(message.content)}
    if message.artifact is not None:
        return message.artifact
    if isinstance(message.content, str):
        try:
            return json.loads(message.content)
        except json.JSONDecodeError:
            return message.content
    return message.content


def _finish_reason(message: AnyMessage, default: str) -> str:
    metadata = getattr(message, "response_metadata", None) or {}
    return metadata.get("finish_reason") or metadata.get("stop_reason") or default


async def translate_graph_stream(stream: AsyncIterator[tuple[str, Any]]) -> AsyncIterator[UpstreamEvent]:
    """Turn ``graph.astream(..., stream_mode=["messages", "updates"])`` output into upstream events."""
    text_open = False
    reasoning_open = False
    finish_reason = "stop"

    yield upstream_event("start")
    yield upstream_event("step-start")

    async for mode, payload in stream:
        if mode == "messages":
            chunk, metadata = payload
            # token chunks, or the whole reply when the model does not stream
            if metadata.get("langgraph_node") != AGENT_NODE or not isinstance(chunk, AIMessage):
                continue
            text, reasoning = _split_content(chunk)
            if reasoning:
                if not reasoning_open:
                    reasoning_open = True
                    yield upstream_event("reasoning-start")
                yield upstream_event("reasoning-delta", text=reasoning)
            if text:
                if reasoning_open:
                    reasoning_open = False
                    yield upstream_event("reasoning-finish")
                if not text_open:
                    text_open = True
                    yield upstream_event("text-start")
                yield upstream_event("text-delta", text=text)

        elif mode == "updates":
            for node, update in payload.items():
                if not update:
                    continue
                if node == AGENT_NODE:
                    if reasoning_open:
                        reasoning_open = False
                        yield upstream_event("reasoning-finish")
                    if text_open:
                        text_open = False
                        yield upstream_event("text-finish")
                    for message in update.get("messages", []):
                        finish_reason = _finish_reason(message, finish_reason)
                        for call in getattr(message, "tool_calls", None) or []:
                            yield upstream_event(
                                "tool-call",
                                toolName=call["name"],
                                toolCallId=call["id"],
                                args=call["args"],
                            )
                    yield upstream_event("step-finish")
                elif node == TOOLS_NODE:
                    for message in update.get("messages", []):
                        if not isinstance(message, ToolMessage):
                            continue
                        yield upstream_event(
                            "tool-result",
                            toolName=message.name,
                            toolCallId=message.tool_call_id,
                            result=tool_result_payload(message),
                        )
                    yield upstream_event("step-start")
                else:
                    logger.debug("Ignoring update from node %s", node)

    if reasoning_open:
        yield upstream_event("reasoning-finish")
    if text_open:
        yield upstream_event("text-finish")
    yield upstream_event("finish", finishReason=finish_reason)


class LangGraphEventSource:
    """Production event source: LangGraph tool loop over a LangChain chat model."""

    def __init__(self, model: BaseChatModel, tools: Sequence[BaseTool], max_steps: int = 5) -> None:
        self._tool_graph = compile_graph(model, tools)
        self._plain_graph = compile_graph(model)
        # one agent step and one tools step per round
        self._recursion_limit = max_steps * 2 + 1

    async def generate(self, message: str, history: Sequence[HistoryMessage] = ()) -> str:
        result = await self._plain_graph.ainvoke(
            {"messages": build_messages(message, history)},
            config={"recursion_limit": self._recursion_limit},
        )
        reply = result["messages"][-1]
        text, _ = _split_content(reply)
        return text

    async def stream_events(
        self,
        message: str,
        history: Sequence[HistoryMessage] = (),
        with_tools: bool = True,
    ) -> AsyncIterator[UpstreamEvent]:
        graph = self._tool_graph if with_tools else self._plain_graph
        logger.info("Starting agent stream (tools=%s, history=%d)", with_tools, len(history))
        stream = graph.astream(
            {"messages": build_messages(message, history)},
            config={"recursion_limit": self._recursion_limit},
            stream_mode=["messages", "updates"],
        )
        async for event in translate_graph_stream(stream):
            yield event
