"""Turn reconciliation and the tax-data confirmation protocol."""

import pytest

from chat_client.models import StreamEvent
from chat_client.reconciler import Turn
from chat_client.session import NO_RESPONSE_ERROR, WELCOME_MESSAGE, ConversationSession

BASE_URL = "http://localhost:3000"

TAX_DATA = {
    "personalInfo": {"firstName": "Anna", "lastName": "Müller", "maritalStatus": "single"},
    "income": {"employment": 85000},
    "deductions": {"pillar3a": 7056},
    "taxYear": 2024,
}


def _event(type_: str, **fields) -> StreamEvent:
    return StreamEvent(type=type_, **fields)


def _start_turn(session: ConversationSession, text: str = "hello") -> Turn:
    session.add_message("user", text)
    session.is_loading = True
    return Turn(session, session.add_placeholder(), BASE_URL)


def _run(session: ConversationSession, events, text: str = "hello") -> Turn:
    turn = _start_turn(session, text)
    for event in events:
        turn.apply(event)
    turn.settle()
    return turn


@pytest.fixture
def session():
    return ConversationSession()


def test_session_starts_with_welcome(session):
    assert [(m.role, m.content) for m in session.messages] == [("assistant", WELCOME_MESSAGE)]


def test_hello_scenario(session):
    turn = _run(session, [_event("connected"), _event("chunk", content="Hi"), _event("chunk", content=" there"), _event("done")])
    reply = session.messages[-1]
    assert reply.content == "Hi there"
    assert reply.first_chunk_loaded is True
    assert turn.first_chunk_loaded is True
    assert session.error is None
    assert session.is_loading is False


def test_first_blank_chunk_keeps_loading(session):
    turn = _start_turn(session)
    turn.apply(_event("chunk", content="  "))
    assert session.is_loading is True
    assert turn.placeholder.first_chunk_loaded is False
    turn.apply(_event("chunk", content="Hi"))
    assert session.is_loading is False
    assert turn.placeholder.first_chunk_loaded is True


def test_reasoning_is_not_displayed(session):
    _run(session, [_event("reasoning", content="secret plan"), _event("reasoning-finish"), _event("chunk", content="Answer"), _event("done")])
    assert session.messages[-1].content == "Answer"


def test_zero_event_turn_removes_placeholder_with_error(session):
    _run(session, [_event("connected"), _event("done")])
    assert [m.role for m in session.messages] == ["assistant", "user"]
    assert session.error == NO_RESPONSE_ERROR


def test_stream_exhausted_without_done_settles(session):
    turn = _run(session, [_event("connected")])
    assert turn.settled
    assert session.error == NO_RESPONSE_ERROR
    assert session.is_loading is False


def test_tool_only_turn_leaves_no_placeholder_and_no_error(session):
    _run(
        session,
        [
            _event("connected"),
            _event("tool-call", toolName="get-tax-data", toolCallId="c1", args={"scenario": "single"}),
            _event("tool-result", toolName="get-tax-data", toolCallId="c1", result={"success": True, "data": TAX_DATA, "scenario": "single"}),
            _event("step-finish"),
            _event("done"),
        ],
    )
    assert [m.role for m in session.messages] == ["assistant", "user"]
    assert all(m.content for m in session.messages)
    assert session.error is None


def test_get_tax_data_opens_modal_and_confirm_is_idempotent(session):
    _run(
        session,
        [
            _event("tool-call", toolName="get-tax-data", toolCallId="c1"),
            _event("tool-result", toolName="get-tax-data", toolCallId="c1", result={"success": True, "data": TAX_DATA, "scenario": "single"}),
            _event("done"),
        ],
        text="Get my single tax data",
    )
    assert session.modal_open is True
    assert session.pending.scenario == "single"
    assert session.pending.tool_call_id == "c1"
    assert session.tax_data is None

    ack = session.confirm_tax_data()
    assert ack.role == "assistant"
    assert "single" in ack.content
    assert session.tax_data == TAX_DATA
    assert session.pending is None
    assert session.modal_open is False

    count = len(session.messages)
    assert session.confirm_tax_data() is None
    assert len(session.messages) == count


def test_cancel_tax_data_declines_without_adopting(session):
    session.offer_tax_data(TAX_DATA, "married")
    decline = session.cancel_tax_data()
    assert decline.role == "assistant"
    assert session.tax_data is None
    assert session.pending is None
    assert session.modal_open is False
    assert session.cancel_tax_data() is None


def test_last_offer_wins(session):
    session.offer_tax_data({"taxYear": 2023}, "single")
    session.offer_tax_data(TAX_DATA, "freelancer")
    session.confirm_tax_data()
    assert session.tax_data == TAX_DATA
    assert "freelancer" in session.messages[-1].content


def test_failed_tax_data_lookup_renders_failure(session):
    _run(
        session,
        [
            _event("tool-result", toolName="get-tax-data", toolCallId="c1", result={"success": False, "scenario": "x", "error": "Tax data not found for scenario: x"}),
            _event("done"),
        ],
    )
    assert "Tax data not found for scenario: x" in session.messages[-1].content
    assert session.modal_open is False


def test_pdf_failure_renders_marker(session):
    _run(
        session,
        [
            _event("tool-call", toolName="generate-tax-pdf", toolCallId="p1"),
            _event("tool-result", toolName="generate-tax-pdf", toolCallId="p1", result={"success": False, "message": "Failed to generate PDF document", "error": "disk full"}),
            _event("done"),
        ],
    )
    content = session.messages[-1].content
    assert "PDF generation failed: disk full" in content


def test_pdf_success_renders_absolute_link(session):
    result = {"success": True, "fileName": "Tax_Return.pdf", "downloadUrl": "/downloads/Tax_Return.pdf", "message": "ok"}
    _run(session, [_event("tool-result", toolName="generate-tax-pdf", toolCallId="p1", result=result), _event("done")])
    content = session.messages[-1].content
    assert "PDF generated successfully" in content
    assert "(http://localhost:3000/downloads/Tax_Return.pdf)" in content


def test_deduction_summary(session):
    result = {
        "totalDeductions": 23656,
        "estimatedTaxSavings": 4731,
        "breakdown": {},
        "recommendations": ["Maximise Pillar 3a", "Track professional expenses"],
    }
    _run(session, [_event("chunk", content="Here you go:"), _event("tool-result", toolName="calculate-deductions", toolCallId="d1", result=result), _event("done")])
    content = session.messages[-1].content
    assert content.startswith("Here you go:")
    assert "CHF 23'656" in content
    assert "CHF 4'731" in content
    assert "1. Maximise Pillar 3a" in content
    assert "2. Track professional expenses" in content


def test_deduction_summary_without_recommendations(session):
    result = {"totalDeductions": 100, "estimatedTaxSavings": 20, "recommendations": []}
    _run(session, [_event("tool-result", toolName="calculate-deductions", toolCallId="d1", result=result), _event("done")])
    assert "Recommendations" not in session.messages[-1].content


def test_unknown_tool_renders_generic_marker(session):
    _run(session, [_event("tool-result", toolName="lookup-municipality", toolCallId="m1", result={}), _event("done")])
    assert "Tool lookup-municipality completed" in session.messages[-1].content


def test_tool_activity_marker_is_configurable(session):
    session.show_tool_activity = True
    turn = _start_turn(session)
    turn.apply(_event("chunk", content="Let me check."))
    turn.apply(_event("tool-call", toolName="calculate-deductions", toolCallId="d1"))
    assert "[Calling tool: calculate-deductions...]" in turn.placeholder.content

    turn.apply(_event("tool-result", toolName="calculate-deductions", toolCallId="d1", result={"totalDeductions": 1, "estimatedTaxSavings": 0}))
    assert "[Calling tool" not in turn.placeholder.content
    assert "Total deductions" in turn.placeholder.content


def test_hidden_tool_activity_by_default(session):
    turn = _start_turn(session)
    turn.apply(_event("tool-call", toolName="calculate-deductions", toolCallId="d1"))
    assert turn.placeholder.content == ""


def test_parallel_tool_calls_resolve_independently(session):
    session.show_tool_activity = True
    turn = _start_turn(session)
    turn.apply(_event("tool-call", toolName="generate-tax-pdf", toolCallId="a"))
    turn.apply(_event("tool-call", toolName="generate-tax-pdf", toolCallId="b"))
    turn.apply(_event("tool-result", toolName="generate-tax-pdf", toolCallId="b", result={"success": False, "error": "second failed"}))

    content = turn.placeholder.content
    assert content.count("[Calling tool: generate-tax-pdf...]") == 1
    assert "second failed" in content

    turn.apply(_event("tool-result", toolName="generate-tax-pdf", toolCallId="a", result={"success": False, "error": "first failed"}))
    content = turn.placeholder.content
    assert "[Calling tool" not in content
    assert content.index("first failed") < content.index("second failed")
    assert [entry.tool_call_id for entry in turn.tool_entries] == ["a", "b"]


def test_error_with_partial_content_keeps_message(session):
    _run(session, [_event("chunk", content="Partial"), _event("error", error="rate limited")])
    assert session.messages[-1].content == "Partial"
    assert session.error == "rate limited"


def test_error_on_empty_placeholder_removes_it(session):
    _run(session, [_event("connected"), _event("error", error="model offline")])
    assert [m.role for m in session.messages] == ["assistant", "user"]
    assert session.error == "model offline"


def test_events_after_settle_are_ignored(session):
    turn = _start_turn(session)
    turn.apply(_event("chunk", content="Done."))
    turn.apply(_event("done"))
    turn.apply(_event("chunk", content=" extra"))
    turn.apply(_event("error", error="late"))
    assert turn.placeholder.content == "Done."
    assert session.error is None


def test_settle_stamps_completion_time(session):
    turn = _start_turn(session)
    started = turn.placeholder.timestamp
    turn.apply(_event("chunk", content="Hi"))
    turn.apply(_event("done"))
    assert turn.placeholder.timestamp >= started


def test_context_injection_only_when_data_active(session):
    assert session.wrap_outgoing("hi") == "hi"
    session.tax_data = {"taxYear": 2024}
    assert session.wrap_outgoing("hi") == '[User\'s Tax Data: {"taxYear": 2024}]\n\nUser Question: hi'


def test_clear_resets_messages_and_error(session):
    session.add_message("user", "hello")
    session.error = "boom"
    session.clear()
    assert [m.content for m in session.messages] == [WELCOME_MESSAGE]
    assert session.error is None
