"""
In-memory conversation state for one agent request.

Content blocks are a closed set of three variants. Every consumer handles all
three explicitly; an unrecognised block type coming back from the model is
dropped at the parsing boundary and never enters the conversation.

Invariant: every ToolUseBlock in an assistant turn is answered by exactly one
ToolResultBlock (same id) in the user turn that immediately follows it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class StopReason(str, Enum):
    """Why a planning call ended. Only TOOL_USE keeps the loop going."""
    TOOL_USE = "tool_use"
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "StopReason":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class LoopState(str, Enum):
    PLANNING = "planning"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED_ROUND_LIMIT = "aborted_round_limit"


# ── Content blocks ───────────────────────────────────────────────────

@dataclass(frozen=True)
class TextBlock:
    text: str

    def to_wire(self) -> dict:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    input: dict = field(default_factory=dict)

    def to_wire(self) -> dict:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: str  # always a serialized JSON string
    is_error: bool = False

    def to_wire(self) -> dict:
        return {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content,
            "is_error": self.is_error,
        }


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def parse_content_block(raw: dict) -> Optional[ContentBlock]:
    """Build a block from the model API's JSON. Unknown types return None."""
    block_type = raw.get("type")
    if block_type == "text":
        return TextBlock(text=raw.get("text") or "")
    if block_type == "tool_use":
        return ToolUseBlock(
            id=raw["id"],
            name=raw["name"],
            input=raw.get("input") or {},
        )
    if block_type == "tool_result":
        content = raw.get("content")
        if not isinstance(content, str):
            content = str(content)
        return ToolResultBlock(
            tool_use_id=raw["tool_use_id"],
            content=content,
            is_error=bool(raw.get("is_error", False)),
        )
    logger.debug("Ignoring content block of type %r", block_type)
    return None


# ── Turns ────────────────────────────────────────────────────────────

@dataclass
class ConversationTurn:
    role: Role
    content: Union[str, list[ContentBlock]]

    def to_wire(self) -> dict:
        if isinstance(self.content, str):
            return {"role": self.role.value, "content": self.content}
        return {
            "role": self.role.value,
            "content": [block.to_wire() for block in self.content],
        }

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        if isinstance(self.content, str):
            return []
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        if isinstance(self.content, str):
            return []
        return [b for b in self.content if isinstance(b, ToolResultBlock)]


@dataclass(frozen=True)
class PlanResult:
    """One non-streaming planning response."""
    stop_reason: StopReason
    content: list[ContentBlock]
    usage: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == StopReason.TOOL_USE and bool(self.tool_uses)


@dataclass
class ToolCallRecord:
    name: str
    input: dict[str, Any]

    def to_dict(self) -> dict:
        return {"name": self.name, "input": self.input}


@dataclass
class AgentState:
    """Fresh per request. `round` counts completed plan→act cycles."""
    messages: list[ConversationTurn] = field(default_factory=list)
    round: int = 0
    status: LoopState = LoopState.PLANNING
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)
