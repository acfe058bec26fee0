"""
Test doubles and small builders shared by the test modules.
"""

import json
from datetime import date

from fnb_assistant.orchestrator.state import PlanResult, StopReason, TextBlock, ToolUseBlock

TODAY = date(2024, 2, 15)
TENANT_A = "tenant-a"
TENANT_B = "tenant-b"


def text_response(text: str) -> PlanResult:
    return PlanResult(stop_reason=StopReason.END_TURN, content=[TextBlock(text)])


def tool_response(*uses, text: str = "") -> PlanResult:
    """uses: (id, name, input) tuples."""
    content = [TextBlock(text)] if text else []
    content += [ToolUseBlock(id=i, name=n, input=inp) for i, n, inp in uses]
    return PlanResult(stop_reason=StopReason.TOOL_USE, content=content)


def parse_events(body: str) -> list[dict]:
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


class FakeGateway:
    """
    Scripted stand-in for ModelGateway.

    Planning responses are served in order; the last one repeats once the
    script runs out.
    """

    def __init__(self, responses=(), stream_chunks=(), error=None, stream_error=None):
        self.responses = list(responses)
        self.stream_chunks = list(stream_chunks)
        self.error = error
        self.stream_error = stream_error
        self.plan_calls: list[dict] = []
        self.stream_calls: list[dict] = []
        self.closed = False

    async def plan(self, system, messages, tools=None):
        self.plan_calls.append({"system": system, "messages": list(messages), "tools": tools})
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    async def stream_final(self, system, messages, tools=None):
        self.stream_calls.append({"system": system, "messages": list(messages), "tools": tools})
        for chunk in self.stream_chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    async def aclose(self):
        self.closed = True
