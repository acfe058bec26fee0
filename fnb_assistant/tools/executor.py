"""
Tool executor.

execute(name, input, tenant_id) -> JSON string. Never raises: an unknown tool,
invalid input, a refused write or a failing query all come back as an
{"error": ...} payload the model can read and react to.

run_batch() runs one round of tool calls concurrently, each in its own DB
session, at most AGENT_MAX_PARALLEL_TOOLS at a time. Results keep the id of
the invocation they answer.
"""

import asyncio
import json
import logging
import time
from datetime import date
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings
from ..core.flags import FeatureFlags
from ..core.guardrails import assess_tool_risk
from ..orchestrator.state import ToolResultBlock, ToolUseBlock
from .registry import ToolContext, ToolError, ToolRegistry, ToolRisk, registry as default_registry

logger = logging.getLogger(__name__)


def to_json(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _error(message: str, **extra) -> str:
    return to_json({"error": message, **extra})


class ToolExecutor:
    """Runs registered tools against the data store, scoped to one tenant per call."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        flags: FeatureFlags,
        registry: Optional[ToolRegistry] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.session_factory = session_factory
        self.settings = settings
        self.flags = flags
        self.registry = registry if registry is not None else default_registry
        self.clock = clock

    def tool_definitions(self) -> list[dict]:
        """What the model is offered this request."""
        return self.registry.for_llm(include_writes=self.flags.enable_write_tools)

    async def execute(self, name: str, tool_input: Optional[dict], tenant_id: str) -> str:
        content, _ = await self._execute(name, tool_input, tenant_id)
        return content

    async def _execute(self, name: str, tool_input: Optional[dict], tenant_id: str) -> tuple[str, bool]:
        spec = self.registry.get(name)
        if spec is None:
            logger.warning("Unknown tool called: %s", name)
            return _error(f"Unknown tool: {name}"), True

        if not tenant_id:
            return _error("Missing tenant id"), True

        risk = assess_tool_risk(name, spec.risk.value, self.flags, tenant_id)
        if not risk.allowed:
            return _error(risk.reason or "Tool not allowed"), True

        try:
            params = spec.input_model.model_validate(tool_input or {})
        except ValidationError as e:
            logger.info("Invalid input for %s: %s", name, e.error_count())
            return _error(
                f"Invalid input for {name}",
                details=[
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ],
            ), True

        logger.info("Tool call: %s(%s) tenant=%s", name, to_json(tool_input or {})[:200], tenant_id)
        start = time.monotonic()

        async with self.session_factory() as session:
            ctx = ToolContext(session=session, tenant_id=tenant_id, today=self.clock())
            try:
                result = await spec.handler(params, ctx)
                if spec.risk == ToolRisk.WRITE:
                    await session.commit()
            except ToolError as e:
                await session.rollback()
                logger.info("Tool %s refused: %s", name, e)
                return _error(str(e)), True
            except Exception as e:
                await session.rollback()
                elapsed = time.monotonic() - start
                logger.error("Tool '%s' failed after %dms: %s", name, int(elapsed * 1000), e, exc_info=True)
                return _error(f"Tool execution failed: {e}"), True

        elapsed = time.monotonic() - start
        logger.info("Tool %s completed in %dms", name, int(elapsed * 1000))
        return to_json(result), False

    async def run_batch(self, tool_uses: Sequence[ToolUseBlock], tenant_id: str) -> list[ToolResultBlock]:
        """Execute one round of tool calls. One result per call, ids preserved."""
        semaphore = asyncio.Semaphore(max(1, self.settings.agent_max_parallel_tools))

        async def _run_one(use: ToolUseBlock) -> ToolResultBlock:
            async with semaphore:
                try:
                    content, is_error = await self._execute(use.name, use.input, tenant_id)
                except Exception as e:
                    # Session open/close failures land here; the batch still completes
                    logger.error("Tool '%s' crashed: %s", use.name, e, exc_info=True)
                    content, is_error = _error(f"Tool execution failed: {e}"), True
            return ToolResultBlock(tool_use_id=use.id, content=content, is_error=is_error)

        results = await asyncio.gather(*[_run_one(use) for use in tool_uses])
        return list(results)
