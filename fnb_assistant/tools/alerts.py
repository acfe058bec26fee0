"""
Alert tools: read active alerts, create custom alert rules.
"""

import logging
from typing import Literal, Optional

from pydantic import Field

from ..models import Alert, CustomAlertRule
from .formatting import cap_limit, take, with_truncation
from .registry import ToolContext, ToolInput, ToolRisk, tool

logger = logging.getLogger(__name__)

Severity = Literal["critical", "warning", "info"]


class GetAlertsInput(ToolInput):
    severity: Optional[Severity] = None
    status: Literal["active", "dismissed", "resolved"] = "active"
    limit: Optional[int] = None


@tool(
    name="get_alerts",
    description=(
        "Get active alerts and notifications. Use when the user asks about warnings, issues, "
        "or things that need attention."
    ),
    parameters={
        "type": "object",
        "properties": {
            "severity": {
                "type": "string",
                "enum": ["critical", "warning", "info"],
                "description": "Filter by severity",
            },
            "status": {
                "type": "string",
                "enum": ["active", "dismissed", "resolved"],
                "description": "Filter by status (default: active)",
            },
            "limit": {"type": "integer", "description": "Max results (default 20, max 50)"},
        },
        "required": [],
    },
    input_model=GetAlertsInput,
    category="alerts",
)
async def get_alerts(params: GetAlertsInput, ctx: ToolContext) -> dict:
    stmt = (
        ctx.select(Alert)
        .where(Alert.status == params.status)
        .order_by(Alert.created_at.desc())
    )
    if params.severity:
        stmt = stmt.where(Alert.severity == params.severity)

    limit = cap_limit(params.limit, default=20, maximum=50)
    rows = (await ctx.session.execute(stmt.limit(limit + 1))).scalars().all()
    alerts, truncated = take(rows, limit)

    return with_truncation(
        {
            "alert_count": len(alerts),
            "alerts": [
                {
                    "title": a.title,
                    "message": a.message,
                    "severity": a.severity,
                    "status": a.status,
                    "created": a.created_at.isoformat() if a.created_at else None,
                }
                for a in alerts
            ],
        },
        truncated, len(alerts), "alerts",
    )


class CreateAlertRuleInput(ToolInput):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: Literal["sales", "customer", "smart"]
    condition_type: Optional[str] = None
    threshold_value: Optional[float] = None
    severity: Severity


@tool(
    name="create_alert_rule",
    description=(
        "Create a custom alert rule to notify the user when certain conditions are met. "
        "IMPORTANT: Always confirm with the user before creating. "
        "Describe the rule and ask for confirmation."
    ),
    parameters={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Name for the alert rule"},
            "description": {"type": "string", "description": "Description of what this alert monitors"},
            "category": {
                "type": "string",
                "enum": ["sales", "customer", "smart"],
                "description": "Alert category",
            },
            "condition_type": {"type": "string", "description": "Type of condition to monitor"},
            "threshold_value": {"type": "number", "description": "Threshold value that triggers the alert"},
            "severity": {
                "type": "string",
                "enum": ["critical", "warning", "info"],
                "description": "Severity level",
            },
        },
        "required": ["name", "category", "severity"],
    },
    input_model=CreateAlertRuleInput,
    risk=ToolRisk.WRITE,
    category="alerts",
)
async def create_alert_rule(params: CreateAlertRuleInput, ctx: ToolContext) -> dict:
    rule = CustomAlertRule(
        tenant_id=ctx.tenant_id,
        name=params.name,
        description=params.description,
        category=params.category,
        condition_type=params.condition_type,
        threshold_value=params.threshold_value,
        severity=params.severity,
        is_active=True,
    )
    ctx.session.add(rule)
    await ctx.session.flush()

    return {
        "success": True,
        "message": f'Alert rule "{rule.name}" created successfully',
        "rule": {
            "id": rule.id,
            "name": rule.name,
            "category": rule.category,
            "severity": rule.severity,
            "threshold_value": rule.threshold_value,
            "is_active": rule.is_active,
        },
    }
