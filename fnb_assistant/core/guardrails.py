"""
Guardrails: input validation and tool risk checks.

Layers:
  1. History validation (count, length, blank turns, turn order) before the loop starts
  2. Tool risk assessment (read vs write) before each tool runs

Write tools are meant to run only after the user confirmed in chat. That rule
lives in the tool descriptions and the system prompt; here we can only switch
writes off entirely and log every one that goes through.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .config import Settings
from .flags import FeatureFlags

logger = logging.getLogger(__name__)


@dataclass
class GuardrailResult:
    """Result of a guardrail check."""
    allowed: bool
    reason: Optional[str] = None


# ── Input Guardrails ──────────────────────────────────────────────────

def check_history(messages: Sequence, settings: Settings) -> GuardrailResult:
    """
    Validate the client-supplied conversation before any model or tool call.
    Each message needs `.role` and `.content`.
    """
    if not messages:
        return GuardrailResult(allowed=False, reason="messages must not be empty")

    if len(messages) > settings.max_history_messages:
        return GuardrailResult(
            allowed=False,
            reason=(
                f"Too many messages ({len(messages)}). "
                f"Maximum is {settings.max_history_messages}."
            ),
        )

    if messages[0].role != "user":
        return GuardrailResult(allowed=False, reason="First message must be from the user")

    for i, msg in enumerate(messages):
        if not msg.content.strip():
            return GuardrailResult(allowed=False, reason=f"Message {i} is empty.")
        if len(msg.content) > settings.max_message_length:
            return GuardrailResult(
                allowed=False,
                reason=(
                    f"Message {i} too long ({len(msg.content)} chars). "
                    f"Maximum is {settings.max_message_length}."
                ),
            )

    if messages[-1].role != "user":
        return GuardrailResult(allowed=False, reason="Last message must be from the user")

    return GuardrailResult(allowed=True)


# ── Tool Risk Assessment ──────────────────────────────────────────────

def assess_tool_risk(tool_name: str, tool_risk: str, flags: FeatureFlags, tenant_id: str = "") -> GuardrailResult:
    """Decide whether a tool call may proceed given its risk class."""
    if tool_risk != "write":
        return GuardrailResult(allowed=True)

    if not flags.enable_write_tools:
        logger.warning("Write tool refused (writes disabled): %s tenant=%s", tool_name, tenant_id)
        return GuardrailResult(
            allowed=False,
            reason=f"Tool '{tool_name}' modifies data and write tools are disabled.",
        )

    # Confirmation is prompt policy only; keep a trail of every write.
    logger.warning("Write tool invoked: %s tenant=%s", tool_name, tenant_id)
    return GuardrailResult(allowed=True)
