"""
Agent loop: plan → act → observe, bounded by AGENT_MAX_ROUNDS.

  PLANNING ──tool_use, round < max──▶ EXECUTING_TOOLS ──results folded, round+1──▶ PLANNING
  PLANNING ──any other stop reason──▶ DONE
  PLANNING ──tool_use, round >= max─▶ ABORTED_ROUND_LIMIT

At most max_rounds + 1 planning calls per request. Round n+1 is only planned
after every result of round n has been appended to the conversation.

The loop runs to completion before anything is streamed, so model errors
surface before the response starts. answer() then produces the text deltas.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import AsyncGenerator, Callable, Iterator, Optional, Sequence

from ..core.config import Settings
from ..core.flags import FeatureFlags
from ..services.llm import ModelGateway, ModelGatewayError
from ..tools.executor import ToolExecutor
from .prompts import build_system_prompt
from .state import (
    AgentState,
    ConversationTurn,
    LoopState,
    Role,
    TextBlock,
    ToolCallRecord,
)

logger = logging.getLogger(__name__)


def chunk_text(text: str, size: int) -> Iterator[str]:
    """Split text into pieces of at most `size` chars. Pieces join back to `text`."""
    size = max(1, size)
    for i in range(0, len(text), size):
        yield text[i:i + size]


@dataclass
class AgentOutcome:
    """Everything the streamer needs once the loop has stopped."""
    state: AgentState
    final_text: str
    system: str
    tools: list[dict]

    @property
    def status(self) -> LoopState:
        return self.state.status

    @property
    def rounds(self) -> int:
        return self.state.round

    @property
    def tool_calls(self) -> list[ToolCallRecord]:
        return self.state.tool_calls


class AgentLoop:
    def __init__(
        self,
        gateway: ModelGateway,
        executor: ToolExecutor,
        settings: Settings,
        flags: FeatureFlags,
        clock: Callable[[], date] = date.today,
    ):
        self.gateway = gateway
        self.executor = executor
        self.settings = settings
        self.flags = flags
        self.clock = clock

    @property
    def max_rounds(self) -> int:
        return self.settings.agent_max_rounds

    async def run(
        self,
        history: Sequence[ConversationTurn],
        tenant_id: str,
        language: Optional[str] = None,
        today: Optional[date] = None,
    ) -> AgentOutcome:
        """Drive the loop to DONE or ABORTED_ROUND_LIMIT. Raises ModelGatewayError."""
        system = build_system_prompt(language or self.settings.default_language, today or self.clock())
        tools = self.executor.tool_definitions()
        state = AgentState(messages=list(history))

        while True:
            state.status = LoopState.PLANNING
            response = await self.gateway.plan(system, state.messages, tools)
            if response.text:
                state.texts.append(response.text)

            if not response.wants_tools:
                state.status = LoopState.DONE
                final_text = response.text
                break

            if state.round >= self.max_rounds:
                state.status = LoopState.ABORTED_ROUND_LIMIT
                final_text = "\n\n".join(state.texts)
                logger.warning(
                    "Round limit reached (%d) tenant=%s, %d tool calls pending",
                    self.max_rounds, tenant_id, len(response.tool_uses),
                )
                break

            state.status = LoopState.EXECUTING_TOOLS
            tool_uses = response.tool_uses
            # The API rejects empty text blocks on replay
            content = [b for b in response.content if not (isinstance(b, TextBlock) and not b.text)]
            state.messages.append(ConversationTurn(role=Role.ASSISTANT, content=content))
            state.tool_calls.extend(ToolCallRecord(name=u.name, input=u.input) for u in tool_uses)

            logger.info(
                "Round %d: %d tool call(s) [%s]",
                state.round + 1, len(tool_uses), ", ".join(u.name for u in tool_uses),
            )
            results = await self.executor.run_batch(tool_uses, tenant_id)
            state.messages.append(ConversationTurn(role=Role.USER, content=list(results)))
            state.round += 1

        logger.info(
            "Agent finished: status=%s rounds=%d tool_calls=%d",
            state.status.value, state.round, len(state.tool_calls),
        )
        return AgentOutcome(state=state, final_text=final_text, system=system, tools=tools)

    async def answer(self, outcome: AgentOutcome) -> AsyncGenerator[str, None]:
        """
        Text deltas of the user-visible answer.

        If the round-limit stream fails before its first delta, the partial
        text gathered during the loop is sent instead. A failure after text
        went out propagates so the stream ends with an error.
        """
        if outcome.status == LoopState.ABORTED_ROUND_LIMIT and self.flags.stream_on_round_limit:
            started = False
            try:
                async for delta in self.gateway.stream_final(outcome.system, outcome.state.messages, outcome.tools):
                    started = True
                    yield delta
                return
            except ModelGatewayError as e:
                if started:
                    raise
                logger.warning("Final answer stream failed, sending partial answer: %s", e)

        for chunk in chunk_text(outcome.final_text, self.settings.agent_stream_chunk_chars):
            yield chunk
