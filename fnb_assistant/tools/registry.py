"""
Tool registry.

Collects every tool handler with its description and input schema, and formats
them for the model's tool-calling API. Dispatch is a dict lookup by name:
an unknown name is a lookup miss, not a fallthrough.

  - Descriptions tell the model WHEN to use a tool, not how it works
  - input_schema is what the model sees; input_model is what we validate with
  - Write tools say, in their description, that the user must confirm first
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ToolRisk(str, Enum):
    """Risk classification for guardrails."""
    READ = "read"    # Read-only, no side effects
    WRITE = "write"  # Creates/modifies data


class ToolError(Exception):
    """A handler-level failure whose message is safe to show the model."""


@dataclass
class ToolContext:
    """What a handler gets besides its validated input."""
    session: AsyncSession
    tenant_id: str
    today: date

    def select(self, model, *extra) -> Select:
        """SELECT scoped to this tenant on `model`. Handlers start every query here."""
        return self.scoped(select(model, *extra), model)

    def scoped(self, stmt: Select, model) -> Select:
        return stmt.where(model.tenant_id == self.tenant_id)


class ToolInput(BaseModel):
    """Base for tool input models. Unknown keys from the model are ignored."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


Handler = Callable[[Any, ToolContext], Awaitable[dict]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: dict
    input_model: type[BaseModel]
    handler: Handler
    risk: ToolRisk = ToolRisk.READ
    category: str = "general"

    def to_llm(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


class ToolRegistry:
    """Ordered name → ToolSpec catalog."""

    def __init__(self):
        self._tools: dict[str, ToolSpec] = {}

    def tool(
        self,
        name: str,
        description: str,
        parameters: dict,
        input_model: type[BaseModel],
        risk: ToolRisk = ToolRisk.READ,
        category: str = "general",
    ):
        """
        Decorator to register an async handler as an LLM-callable tool.

        Args:
            name:        Dispatch key. Stable across versions.
            description: When the model should pick this tool.
            parameters:  JSON Schema published to the model.
            input_model: Pydantic model the raw input is validated against.
            risk:        READ or WRITE.
            category:    Grouping (invoices, finance, catalog, alerts).
        """

        def decorator(func: Handler):
            if name in self._tools:
                raise ValueError(f"Tool already registered: {name}")
            params = dict(parameters)
            params.setdefault("type", "object")
            params.setdefault("required", [])

            self._tools[name] = ToolSpec(
                name=name,
                description=description,
                input_schema=params,
                input_model=input_model,
                handler=func,
                risk=risk,
                category=category,
            )
            logger.debug("Registered tool: %s [%s/%s]", name, category, risk.value)
            return func

        return decorator

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def for_llm(self, include_writes: bool = True) -> list[dict]:
        """Tool definitions in the model API's format."""
        return [
            t.to_llm()
            for t in self._tools.values()
            if include_writes or t.risk != ToolRisk.WRITE
        ]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


# Process-wide catalog. Tool modules register into it at import time.
registry = ToolRegistry()
tool = registry.tool


def init_tools() -> ToolRegistry:
    """Import tool modules to trigger registration. Safe to call repeatedly."""
    from . import invoices  # noqa: F401
    from . import finance   # noqa: F401
    from . import suppliers  # noqa: F401
    from . import catalog   # noqa: F401
    from . import alerts    # noqa: F401

    logger.info(
        "Tools ready: %d tools [%s]",
        len(registry),
        ", ".join(registry.names()),
    )
    return registry
