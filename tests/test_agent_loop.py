import json

import pytest

from fnb_assistant.orchestrator.agent_loop import AgentLoop, chunk_text
from fnb_assistant.orchestrator.state import ConversationTurn, LoopState, Role, ToolResultBlock
from fnb_assistant.orchestrator.streamer import stream_events
from fnb_assistant.services.llm import ModelGatewayError

from helpers import TENANT_A, TODAY, FakeGateway, parse_events, text_response, tool_response

QUESTION = [ConversationTurn(role=Role.USER, content="How much revenue did we make in January?")]
JANUARY = {"from_date": "2024-01-01", "to_date": "2024-01-31"}


def make_agent(gateway, executor, settings, flags):
    return AgentLoop(gateway, executor, settings, flags, clock=lambda: TODAY)


async def collect(agent, outcome) -> list[dict]:
    body = "".join([event async for event in stream_events(outcome, agent.answer(outcome))])
    return parse_events(body)


async def test_revenue_round_trip(executor, settings, flags):
    gateway = FakeGateway([
        tool_response(("tu_1", "query_revenue", JANUARY)),
        text_response("Your revenue was reported above,"),
    ])
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)

    assert outcome.status == LoopState.DONE
    assert outcome.rounds == 1
    assert len(gateway.plan_calls) == 2

    # The second planning call sees the tool result, matched by id
    results_turn = gateway.plan_calls[1]["messages"][-1]
    assert results_turn.role == Role.USER
    [result] = results_turn.tool_results
    assert result.tool_use_id == "tu_1"
    assert not result.is_error
    assert json.loads(result.content)["total_revenue"] == "€500,00"

    events = await collect(agent, outcome)
    assert events[0] == {"type": "tool_calls", "tools": [{"name": "query_revenue", "input": JANUARY}]}
    deltas = events[1:-1]
    assert all(e["type"] == "content_block_delta" for e in deltas)
    assert "".join(e["delta"]["text"] for e in deltas) == "Your revenue was reported above,"
    assert events[-1]["type"] == "message_stop"


async def test_loop_terminates_at_round_limit(executor, settings, flags):
    # A model that never stops asking for tools
    gateway = FakeGateway([tool_response(("tu", "get_alerts", {}), text="Checking")])
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)

    assert outcome.status == LoopState.ABORTED_ROUND_LIMIT
    assert outcome.rounds == settings.agent_max_rounds
    assert len(gateway.plan_calls) == settings.agent_max_rounds + 1
    assert outcome.final_text == "\n\n".join(["Checking"] * (settings.agent_max_rounds + 1))
    assert len(outcome.tool_calls) == settings.agent_max_rounds


async def test_round_counter_advances_one_turn_pair_per_cycle(executor, settings, flags):
    gateway = FakeGateway([tool_response(("tu", "get_alerts", {}))])
    agent = make_agent(gateway, executor, settings, flags)

    await agent.run(QUESTION, TENANT_A)

    sizes = [len(call["messages"]) for call in gateway.plan_calls]
    assert sizes == [len(QUESTION) + 2 * n for n in range(settings.agent_max_rounds + 1)]

    # Every assistant tool-use turn is answered by the next user turn
    final = gateway.plan_calls[-1]["messages"]
    for asked, answered in zip(final[1::2], final[2::2]):
        assert asked.role == Role.ASSISTANT and answered.role == Role.USER
        assert {u.id for u in asked.tool_uses} == {r.tool_use_id for r in answered.tool_results}


async def test_next_round_sees_every_parallel_result(executor, settings, flags):
    gateway = FakeGateway([
        tool_response(
            ("a", "query_revenue", JANUARY),
            ("b", "query_expenses", JANUARY),
            ("c", "no_such_tool", {}),
        ),
        text_response("Done."),
    ])
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)

    results = gateway.plan_calls[1]["messages"][-1].content
    assert all(isinstance(r, ToolResultBlock) for r in results)
    assert {r.tool_use_id for r in results} == {"a", "b", "c"}
    assert {r.tool_use_id for r in results if r.is_error} == {"c"}
    assert [c.name for c in outcome.tool_calls] == ["query_revenue", "query_expenses", "no_such_tool"]


async def test_round_limit_streams_a_final_answer(executor, settings, flags):
    flags.stream_on_round_limit = True
    gateway = FakeGateway(
        [tool_response(("tu", "get_alerts", {}))],
        stream_chunks=["Here is ", "what I found."],
    )
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)
    events = await collect(agent, outcome)

    assert len(gateway.stream_calls) == 1
    streamed = gateway.stream_calls[0]["messages"]
    assert streamed[-1].role == Role.USER and streamed[-1].tool_results
    assert "".join(e["delta"]["text"] for e in events if e["type"] == "content_block_delta") == "Here is what I found."
    assert events[-1] == {"type": "message_stop", "stop_reason": "aborted_round_limit", "rounds": 3}


async def test_round_limit_falls_back_to_partial_answer_when_stream_fails_early(executor, settings, flags):
    flags.stream_on_round_limit = True
    gateway = FakeGateway(
        [tool_response(("tu", "get_alerts", {}), text="Partial insight")],
        stream_error=ModelGatewayError(529, "overloaded"),
    )
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)
    events = await collect(agent, outcome)

    assert len(gateway.stream_calls) == 1
    assert events[0]["type"] == "tool_calls"
    deltas = [e for e in events if e["type"] == "content_block_delta"]
    assert "".join(e["delta"]["text"] for e in deltas) == outcome.final_text
    assert outcome.final_text.startswith("Partial insight")
    assert events[-1] == {"type": "message_stop", "stop_reason": "aborted_round_limit", "rounds": 3}


async def test_round_limit_stream_failure_after_text_ends_with_error(executor, settings, flags):
    flags.stream_on_round_limit = True
    gateway = FakeGateway(
        [tool_response(("tu", "get_alerts", {}), text="Partial insight")],
        stream_chunks=["Here "],
        stream_error=ModelGatewayError(None, "stream ended before message_stop"),
    )
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)
    events = await collect(agent, outcome)

    assert [e["type"] for e in events] == ["tool_calls", "content_block_delta", "error"]
    assert events[1]["delta"]["text"] == "Here "
    assert not any(e["type"] == "message_stop" for e in events)


async def test_done_does_not_call_stream(executor, settings, flags):
    flags.stream_on_round_limit = True
    gateway = FakeGateway([text_response("Hello")])
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)
    events = await collect(agent, outcome)

    assert gateway.stream_calls == []
    assert events[0]["type"] == "content_block_delta"
    assert outcome.rounds == 0


async def test_tool_use_stop_without_tool_blocks_finishes(executor, settings, flags):
    gateway = FakeGateway([tool_response(text="Nothing to look up.")])
    agent = make_agent(gateway, executor, settings, flags)

    outcome = await agent.run(QUESTION, TENANT_A)

    assert outcome.status == LoopState.DONE
    assert outcome.final_text == "Nothing to look up."


async def test_system_prompt_and_tool_catalog(executor, settings, flags):
    gateway = FakeGateway([text_response("ok")])
    agent = make_agent(gateway, executor, settings, flags)

    await agent.run(QUESTION, TENANT_A)
    await agent.run(QUESTION, TENANT_A, language="en")

    greek, english = gateway.plan_calls
    assert TODAY.isoformat() in greek["system"]
    assert "Greek" in greek["system"]
    assert "English" in english["system"]
    assert "update_invoice_status" in {t["name"] for t in greek["tools"]}


async def test_write_tools_hidden_when_disabled(executor, settings, flags):
    flags.enable_write_tools = False
    gateway = FakeGateway([text_response("ok")])
    agent = make_agent(gateway, executor, settings, flags)

    await agent.run(QUESTION, TENANT_A)

    offered = {t["name"] for t in gateway.plan_calls[0]["tools"]}
    assert "update_invoice_status" not in offered
    assert "query_invoices" in offered


async def test_gateway_error_is_fatal(executor, settings, flags):
    gateway = FakeGateway(error=ModelGatewayError(529, "overloaded"))
    agent = make_agent(gateway, executor, settings, flags)

    with pytest.raises(ModelGatewayError):
        await agent.run(QUESTION, TENANT_A)
    assert len(gateway.plan_calls) == 1


def test_chunk_text_rejoins_exactly():
    text = "Τα έσοδα του Ιανουαρίου ήταν €500,00."
    chunks = list(chunk_text(text, 7))
    assert "".join(chunks) == text
    assert all(len(c) <= 7 for c in chunks)
    assert list(chunk_text("", 7)) == []
