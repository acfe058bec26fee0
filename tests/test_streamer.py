from fnb_assistant.orchestrator.agent_loop import AgentOutcome
from fnb_assistant.orchestrator.state import AgentState, LoopState, ToolCallRecord
from fnb_assistant.orchestrator.streamer import sse, stream_events
from fnb_assistant.services.llm import ModelGatewayError

from helpers import parse_events


def outcome(tool_calls=(), status=LoopState.DONE, rounds=0) -> AgentOutcome:
    state = AgentState(round=rounds, status=status, tool_calls=list(tool_calls))
    return AgentOutcome(state=state, final_text="", system="", tools=[])


async def deltas(*chunks, error=None):
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


async def collect(result, source) -> list[dict]:
    return parse_events("".join([e async for e in stream_events(result, source)]))


def test_sse_framing_keeps_unicode():
    assert sse({"text": "€ και"}) == 'data: {"text": "€ και"}\n\n'


async def test_no_tools_no_summary_event():
    events = await collect(outcome(), deltas("Hi ", "there"))

    assert [e["type"] for e in events] == ["content_block_delta", "content_block_delta", "message_stop"]
    assert events[0] == {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi "}}
    assert events[-1] == {"type": "message_stop", "stop_reason": "done", "rounds": 0}


async def test_tool_summary_lists_calls_in_order():
    calls = [
        ToolCallRecord("query_revenue", {"from_date": "2024-01-01"}),
        ToolCallRecord("get_alerts", {}),
        ToolCallRecord("query_revenue", {"from_date": "2023-12-01"}),
    ]
    events = await collect(outcome(calls, rounds=2), deltas("ok"))

    assert events[0] == {
        "type": "tool_calls",
        "tools": [
            {"name": "query_revenue", "input": {"from_date": "2024-01-01"}},
            {"name": "get_alerts", "input": {}},
            {"name": "query_revenue", "input": {"from_date": "2023-12-01"}},
        ],
    }
    assert events[-1]["rounds"] == 2


async def test_empty_deltas_are_skipped():
    events = await collect(outcome(), deltas("", "a", ""))
    assert [e["type"] for e in events] == ["content_block_delta", "message_stop"]


async def test_mid_stream_failure_ends_with_error_not_stop():
    events = await collect(
        outcome(status=LoopState.ABORTED_ROUND_LIMIT, rounds=8),
        deltas("partial", error=ModelGatewayError(None, "stream ended before message_stop")),
    )

    assert [e["type"] for e in events] == ["content_block_delta", "error"]
    assert events[-1]["error"]["type"] == "stream_error"
    assert "message_stop" in events[-1]["error"]["message"]
