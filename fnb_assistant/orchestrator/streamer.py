"""
Response streamer: serializes an agent outcome as server-sent events.

  data: {"type": "tool_calls", "tools": [{"name": ..., "input": {...}}]}     (only if tools ran)
  data: {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "..."}}
  data: {"type": "message_stop", "stop_reason": "done", "rounds": 2}

A failure mid-stream ends with an "error" event and no message_stop, so the
client can tell a cut-off answer from a finished one.
"""

import json
import logging
from typing import AsyncGenerator, AsyncIterable

from .agent_loop import AgentOutcome

logger = logging.getLogger(__name__)


def sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"


def tool_calls_event(outcome: AgentOutcome) -> dict:
    return {"type": "tool_calls", "tools": [call.to_dict() for call in outcome.tool_calls]}


def text_delta_event(text: str) -> dict:
    return {
        "type": "content_block_delta",
        "index": 0,
        "delta": {"type": "text_delta", "text": text},
    }


async def stream_events(outcome: AgentOutcome, deltas: AsyncIterable[str]) -> AsyncGenerator[str, None]:
    if outcome.tool_calls:
        yield sse(tool_calls_event(outcome))

    try:
        async for text in deltas:
            if text:
                yield sse(text_delta_event(text))
    except Exception as e:
        logger.error("SSE stream error: %s", e, exc_info=True)
        yield sse({"type": "error", "error": {"type": "stream_error", "message": str(e)}})
        return

    yield sse({
        "type": "message_stop",
        "stop_reason": outcome.status.value,
        "rounds": outcome.rounds,
    })
