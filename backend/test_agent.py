"""Agent event source: prompt assembly, graph stream translation and the LangGraph loop."""

from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage, SystemMessage, ToolMessage
from langchain_core.outputs import ChatGeneration, ChatResult

from backend.graph.agent import (
    SYSTEM_PROMPT,
    LangGraphEventSource,
    build_messages,
    tool_result_payload,
    translate_graph_stream,
)
from backend.tools.get_tax_data import get_tax_data_tool


class ScriptedChatModel(BaseChatModel):
    """Returns the queued replies in order, one per model call."""

    replies: list[AIMessage]

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def bind_tools(self, tools, **kwargs: Any):
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs: Any) -> ChatResult:
        return ChatResult(generations=[ChatGeneration(message=self.replies.pop(0))])


async def _as_stream(items):
    for item in items:
        yield item


async def _kinds(stream) -> list[tuple[str, dict]]:
    return [(event["kind"], event["payload"]) async for event in translate_graph_stream(_as_stream(stream))]


def _agent(chunk):
    return ("messages", (chunk, {"langgraph_node": "agent"}))


def test_build_messages_orders_prompt_history_and_question():
    history = [
        {"role": "assistant", "content": "Hallo!", "timestamp": ""},
        {"role": "user", "content": "  ", "timestamp": ""},
        {"role": "tool", "content": "ignored", "timestamp": ""},
        {"role": "user", "content": "I live in Winterthur", "timestamp": ""},
    ]
    messages = build_messages("What can I deduct?", history)
    assert isinstance(messages[0], SystemMessage)
    assert messages[0].content == SYSTEM_PROMPT
    assert [type(m) for m in messages[1:]] == [AIMessage, HumanMessage, HumanMessage]
    assert messages[-1].content == "What can I deduct?"


def test_tool_result_payload_prefers_artifact():
    message = ToolMessage(content="{}", tool_call_id="c1", artifact={"success": True})
    assert tool_result_payload(message) == {"success": True}


def test_tool_result_payload_decodes_json_content():
    message = ToolMessage(content='{"totalDeductions": 10}', tool_call_id="c1")
    assert tool_result_payload(message) == {"totalDeductions": 10}


def test_tool_result_payload_error_status():
    message = ToolMessage(content="Error: boom", tool_call_id="c1", status="error")
    assert tool_result_payload(message) == {"success": False, "error": "Error: boom"}


async def test_translate_text_turn():
    events = await _kinds(
        [
            _agent(AIMessageChunk(content="Hi")),
            _agent(AIMessageChunk(content=" there")),
            ("updates", {"agent": {"messages": [AIMessage(content="Hi there", response_metadata={"finish_reason": "stop"})]}}),
        ]
    )
    assert [kind for kind, _ in events] == [
        "start",
        "step-start",
        "text-start",
        "text-delta",
        "text-delta",
        "text-finish",
        "step-finish",
        "finish",
    ]
    assert "".join(p["text"] for k, p in events if k == "text-delta") == "Hi there"
    assert events[-1][1] == {"finishReason": "stop"}


async def test_translate_reasoning_then_text():
    events = await _kinds(
        [
            _agent(AIMessageChunk(content="", additional_kwargs={"reasoning_content": "User wants deductions."})),
            _agent(AIMessageChunk(content=[{"type": "text", "text": "Sure."}])),
        ]
    )
    kinds = [kind for kind, _ in events]
    assert kinds.index("reasoning-delta") < kinds.index("reasoning-finish") < kinds.index("text-delta")
    assert kinds[-2:] == ["text-finish", "finish"]


async def test_translate_tool_round_trip():
    call = {"name": "get-tax-data", "args": {"scenario": "single"}, "id": "call_1"}
    events = await _kinds(
        [
            ("updates", {"agent": {"messages": [AIMessage(content="", tool_calls=[call])]}}),
            (
                "updates",
                {
                    "tools": {
                        "messages": [
                            ToolMessage(
                                content="{}",
                                name="get-tax-data",
                                tool_call_id="call_1",
                                artifact={"success": True, "scenario": "single"},
                            )
                        ]
                    }
                },
            ),
            ("messages", (ToolMessage(content="{}", tool_call_id="call_1"), {"langgraph_node": "tools"})),
        ]
    )
    kinds = [kind for kind, _ in events]
    assert kinds == ["start", "step-start", "tool-call", "step-finish", "tool-result", "step-start", "finish"]
    assert events[2][1] == {"toolName": "get-tax-data", "toolCallId": "call_1", "args": {"scenario": "single"}}
    assert events[4][1]["result"] == {"success": True, "scenario": "single"}


async def test_langgraph_event_source_runs_tool_loop():
    model = ScriptedChatModel(
        replies=[
            AIMessage(
                content="",
                tool_calls=[{"name": "get-tax-data", "args": {"scenario": "single"}, "id": "call_1"}],
            ),
            AIMessage(content="I've loaded your tax data."),
        ]
    )
    source = LangGraphEventSource(model, [get_tax_data_tool])

    events = [event async for event in source.stream_events("Get my single tax data")]
    kinds = [event["kind"] for event in events]

    assert kinds[0] == "start"
    assert kinds[-1] == "finish"
    assert kinds.index("tool-call") < kinds.index("tool-result") < kinds.index("text-delta")

    result = next(e["payload"] for e in events if e["kind"] == "tool-result")
    assert result["toolCallId"] == "call_1"
    assert result["result"]["success"] is True
    assert result["result"]["data"]["personalInfo"]["lastName"] == "Müller"

    text = "".join(e["payload"]["text"] for e in events if e["kind"] == "text-delta")
    assert text == "I've loaded your tax data."


async def test_langgraph_event_source_generate():
    model = ScriptedChatModel(replies=[AIMessage(content="Grüezi!")])
    source = LangGraphEventSource(model, [get_tax_data_tool])
    assert await source.generate("hello") == "Grüezi!"
