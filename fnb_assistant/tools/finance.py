"""
Finance tools: revenue, expenses, period summaries, cash, fixed costs,
scheduled payments.
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Literal, Optional

from pydantic import Field
from sqlalchemy import func, select

from ..models import CashPosition, ExpenseEntry, FixedCost, Invoice, RevenueEntry, ScheduledPayment
from .formatting import (
    bucket_key,
    cap_limit,
    first_of_month,
    format_eur,
    format_pct,
    iso,
    margin,
    pct_change,
    previous_period,
    sum_amounts,
    take,
    with_truncation,
)
from .registry import ToolContext, ToolError, ToolInput, ToolRisk, tool

logger = logging.getLogger(__name__)

ENTRIES_LISTED = 50
MAX_BUCKETS = 100

_DATE_RANGE = {
    "from_date": {
        "type": "string",
        "description": "Start date (YYYY-MM-DD). Defaults to start of current month.",
    },
    "to_date": {"type": "string", "description": "End date (YYYY-MM-DD). Defaults to today."},
}


def _resolve_range(from_date: Optional[date], to_date: Optional[date], ctx: ToolContext) -> tuple[date, date]:
    start = from_date or first_of_month(ctx.today)
    end = to_date or ctx.today
    if end < start:
        raise ToolError(f"to_date ({end}) is before from_date ({start})")
    return start, end


async def _sum(ctx: ToolContext, model, column, *conditions) -> tuple[float, int]:
    """(total, row count) for a tenant-scoped aggregate."""
    stmt = ctx.scoped(select(func.coalesce(func.sum(column), 0), func.count()), model)
    if conditions:
        stmt = stmt.where(*conditions)
    total, count = (await ctx.session.execute(stmt)).one()
    return float(total or 0), int(count or 0)


# ── Revenue / expenses ───────────────────────────────────────────────

class EntriesInput(ToolInput):
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    category: Optional[str] = None
    group_by: Optional[Literal["day", "week", "month", "category"]] = None


async def _entries_report(model, params: EntriesInput, ctx: ToolContext, label: str) -> dict:
    start, end = _resolve_range(params.from_date, params.to_date, ctx)

    conditions = [model.entry_date >= start, model.entry_date <= end]
    if params.category:
        conditions.append(model.category == params.category)

    total, count = await _sum(ctx, model, model.amount, *conditions)
    result = {
        "period": f"{start.isoformat()} to {end.isoformat()}",
        f"total_{label}": format_eur(total),
        "entries_count": count,
    }

    if params.group_by == "category":
        amount = func.coalesce(func.sum(model.amount), 0)
        stmt = (
            ctx.scoped(select(model.category, amount, func.count()), model)
            .where(*conditions)
            .group_by(model.category)
            .order_by(amount.desc())
            .limit(MAX_BUCKETS + 1)
        )
        groups, truncated = take((await ctx.session.execute(stmt)).all(), MAX_BUCKETS)
        result["by_category"] = {
            cat or "Other": {
                "amount": format_eur(cat_total),
                "count": cat_count,
                "percentage": format_pct(float(cat_total) / total * 100) if total else "N/A",
            }
            for cat, cat_total, cat_count in groups
        }
        return with_truncation(result, truncated, len(groups), "categories (totals cover all of them)")

    if params.group_by:
        # daily sums come from SQL; weeks and months fold them together here
        stmt = (
            ctx.scoped(select(model.entry_date, func.coalesce(func.sum(model.amount), 0)), model)
            .where(*conditions)
            .group_by(model.entry_date)
        )
        buckets: dict[str, float] = defaultdict(float)
        for day, day_total in (await ctx.session.execute(stmt)).all():
            buckets[bucket_key(day, params.group_by)] += float(day_total or 0)
        shown, truncated = take(sorted(buckets.items()), MAX_BUCKETS)
        result[f"by_{params.group_by}"] = {k: format_eur(v) for k, v in shown}
        return with_truncation(result, truncated, len(shown), f"{params.group_by} buckets (totals cover all of them)")

    stmt = (
        ctx.select(model)
        .where(*conditions)
        .order_by(model.entry_date.asc())
        .limit(ENTRIES_LISTED + 1)
    )
    listed, truncated = take((await ctx.session.execute(stmt)).scalars().all(), ENTRIES_LISTED)
    result["entries"] = [
        {
            "date": iso(e.entry_date),
            "amount": format_eur(e.amount),
            "description": e.description,
            "category": e.category,
        }
        for e in listed
    ]
    return with_truncation(result, truncated, len(listed), "entries (totals cover all of them)")


_ENTRIES_PARAMETERS = {
    "type": "object",
    "properties": {
        **_DATE_RANGE,
        "category": {"type": "string", "description": "Filter by category"},
        "group_by": {
            "type": "string",
            "enum": ["day", "week", "month", "category"],
            "description": "Group results by time period or 'category' for a breakdown. "
                           "If omitted, returns individual entries.",
        },
    },
    "required": [],
}


@tool(
    name="query_revenue",
    description=(
        "Get revenue data for any date range, with optional grouping by day/week/month/category. "
        "Use when the user asks about revenue, income, sales figures, or revenue trends."
    ),
    parameters=_ENTRIES_PARAMETERS,
    input_model=EntriesInput,
    category="finance",
)
async def query_revenue(params: EntriesInput, ctx: ToolContext) -> dict:
    return await _entries_report(RevenueEntry, params, ctx, "revenue")


@tool(
    name="query_expenses",
    description=(
        "Get expense data for any date range, with optional category breakdown or grouping. "
        "Use when the user asks about expenses, costs, spending, or wants a breakdown."
    ),
    parameters=_ENTRIES_PARAMETERS,
    input_model=EntriesInput,
    category="finance",
)
async def query_expenses(params: EntriesInput, ctx: ToolContext) -> dict:
    return await _entries_report(ExpenseEntry, params, ctx, "expenses")


# ── get_financial_summary ────────────────────────────────────────────

class FinancialSummaryInput(ToolInput):
    from_date: Optional[date] = None
    to_date: Optional[date] = None


@tool(
    name="get_financial_summary",
    description=(
        "Get a comprehensive financial summary for a date range including revenue, expenses, "
        "profit, margins, and comparisons with the previous period of the same length. "
        "Use for broad financial questions or 'how is the business doing' type queries."
    ),
    parameters={"type": "object", "properties": dict(_DATE_RANGE), "required": []},
    input_model=FinancialSummaryInput,
    category="finance",
)
async def get_financial_summary(params: FinancialSummaryInput, ctx: ToolContext) -> dict:
    start, end = _resolve_range(params.from_date, params.to_date, ctx)
    prev_start, prev_end = previous_period(start, end)

    rev, _ = await _sum(ctx, RevenueEntry, RevenueEntry.amount,
                        RevenueEntry.entry_date >= start, RevenueEntry.entry_date <= end)
    exp, _ = await _sum(ctx, ExpenseEntry, ExpenseEntry.amount,
                        ExpenseEntry.entry_date >= start, ExpenseEntry.entry_date <= end)
    prev_rev, _ = await _sum(ctx, RevenueEntry, RevenueEntry.amount,
                             RevenueEntry.entry_date >= prev_start, RevenueEntry.entry_date <= prev_end)
    prev_exp, _ = await _sum(ctx, ExpenseEntry, ExpenseEntry.amount,
                             ExpenseEntry.entry_date >= prev_start, ExpenseEntry.entry_date <= prev_end)
    overdue_total, overdue_count = await _sum(
        ctx, Invoice, Invoice.total_amount,
        Invoice.status == "approved", Invoice.due_date < ctx.today,
    )
    fixed_total, _ = await _sum(ctx, FixedCost, FixedCost.amount,
                                FixedCost.month == first_of_month(ctx.today))

    cash_stmt = ctx.select(CashPosition).order_by(CashPosition.recorded_date.desc()).limit(1)
    cash = (await ctx.session.execute(cash_stmt)).scalar_one_or_none()

    profit = rev - exp
    prev_profit = prev_rev - prev_exp

    return {
        "current_period": {"from": start.isoformat(), "to": end.isoformat()},
        "previous_period": {"from": prev_start.isoformat(), "to": prev_end.isoformat()},
        "revenue": format_eur(rev),
        "expenses": format_eur(exp),
        "net_profit": format_eur(profit),
        "profit_margin": margin(profit, rev),
        "previous_revenue": format_eur(prev_rev),
        "previous_expenses": format_eur(prev_exp),
        "previous_profit": format_eur(prev_profit),
        "revenue_change": pct_change(rev, prev_rev),
        "expense_change": pct_change(exp, prev_exp),
        "profit_change": pct_change(profit, prev_profit, signed_base=True),
        "cash_position": _cash_summary(cash) if cash else None,
        "overdue_invoices_total": format_eur(overdue_total),
        "overdue_invoice_count": overdue_count,
        "monthly_fixed_costs": format_eur(fixed_total),
    }


# ── get_cash_position ────────────────────────────────────────────────

def _cash_summary(pos: CashPosition) -> dict:
    return {
        "cash_on_hand": format_eur(pos.cash_on_hand),
        "bank_balance": format_eur(pos.bank_balance),
        "total_cash": format_eur(pos.total_cash),
        "as_of": iso(pos.recorded_date),
    }


class CashPositionInput(ToolInput):
    on_date: Optional[date] = Field(default=None, alias="date")
    history_days: Optional[int] = Field(default=None, ge=1, le=366)


@tool(
    name="get_cash_position",
    description=(
        "Get the current or historical cash position (cash on hand, bank balance, total cash). "
        "Use when the user asks about available cash, bank balance, or liquidity."
    ),
    parameters={
        "type": "object",
        "properties": {
            "date": {
                "type": "string",
                "description": "Get cash position for this date (YYYY-MM-DD). Defaults to latest.",
            },
            "history_days": {
                "type": "integer",
                "description": "If set, returns cash positions for the last N days (max 366).",
            },
        },
        "required": [],
    },
    input_model=CashPositionInput,
    category="finance",
)
async def get_cash_position(params: CashPositionInput, ctx: ToolContext) -> dict:
    if params.history_days:
        since = ctx.today - timedelta(days=params.history_days)
        stmt = (
            ctx.select(CashPosition)
            .where(CashPosition.recorded_date >= since)
            .order_by(CashPosition.recorded_date.asc())
        )
        positions = (await ctx.session.execute(stmt)).scalars().all()
        return {
            "from": since.isoformat(),
            "positions": [
                {
                    "date": iso(p.recorded_date),
                    "cash_on_hand": format_eur(p.cash_on_hand),
                    "bank_balance": format_eur(p.bank_balance),
                    "total": format_eur(p.total_cash),
                }
                for p in positions
            ],
        }

    stmt = ctx.select(CashPosition)
    if params.on_date:
        stmt = stmt.where(CashPosition.recorded_date <= params.on_date)
    stmt = stmt.order_by(CashPosition.recorded_date.desc()).limit(1)
    pos = (await ctx.session.execute(stmt)).scalar_one_or_none()
    if pos is None:
        return {"message": "No cash position data found"}

    summary = _cash_summary(pos)
    return {"date": summary.pop("as_of"), **summary}


# ── query_fixed_costs ────────────────────────────────────────────────

class FixedCostsInput(ToolInput):
    month: Optional[date] = None
    category: Optional[str] = None


@tool(
    name="query_fixed_costs",
    description=(
        "Get monthly fixed/recurring costs by category. Use when the user asks about fixed costs, "
        "overhead, rent, payroll, or recurring expenses."
    ),
    parameters={
        "type": "object",
        "properties": {
            "month": {
                "type": "string",
                "description": "Month in YYYY-MM-DD format (first of month). Defaults to current month.",
            },
            "category": {"type": "string", "description": "Filter by category"},
        },
        "required": [],
    },
    input_model=FixedCostsInput,
    category="finance",
)
async def query_fixed_costs(params: FixedCostsInput, ctx: ToolContext) -> dict:
    month = first_of_month(params.month or ctx.today)
    stmt = ctx.select(FixedCost).where(FixedCost.month == month).order_by(FixedCost.category.asc())
    if params.category:
        stmt = stmt.where(FixedCost.category == params.category)

    costs = (await ctx.session.execute(stmt)).scalars().all()
    return {
        "month": month.isoformat(),
        "total_fixed_costs": format_eur(sum_amounts(c.amount for c in costs)),
        "costs": [
            {"category": c.category, "amount": format_eur(c.amount), "notes": c.notes}
            for c in costs
        ],
    }


# ── get_scheduled_payments ───────────────────────────────────────────

class ScheduledPaymentsInput(ToolInput):
    status: Literal["pending", "completed", "cancelled"] = "pending"
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    limit: Optional[int] = None


@tool(
    name="get_scheduled_payments",
    description=(
        "Get upcoming scheduled/pending payments. Use when the user asks about upcoming payments, "
        "future obligations, or payment schedule."
    ),
    parameters={
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "enum": ["pending", "completed", "cancelled"],
                "description": "Filter by status (default: pending)",
            },
            "from_date": {"type": "string", "description": "Show payments due from this date"},
            "to_date": {"type": "string", "description": "Show payments due until this date"},
            "limit": {"type": "integer", "description": "Max results (default 20, max 50)"},
        },
        "required": [],
    },
    input_model=ScheduledPaymentsInput,
    category="finance",
)
async def get_scheduled_payments(params: ScheduledPaymentsInput, ctx: ToolContext) -> dict:
    stmt = (
        ctx.select(ScheduledPayment)
        .where(ScheduledPayment.status == params.status)
        .order_by(ScheduledPayment.due_date.asc())
    )
    if params.from_date:
        stmt = stmt.where(ScheduledPayment.due_date >= params.from_date)
    if params.to_date:
        stmt = stmt.where(ScheduledPayment.due_date <= params.to_date)

    limit = cap_limit(params.limit, default=20, maximum=50)
    rows = (await ctx.session.execute(stmt.limit(limit + 1))).scalars().all()
    payments, truncated = take(rows, limit)

    return with_truncation(
        {
            f"total_{params.status}": format_eur(sum_amounts(p.amount for p in payments)),
            "count": len(payments),
            "payments": [
                {
                    "description": p.description,
                    "amount": format_eur(p.amount),
                    "due_date": iso(p.due_date),
                    "status": p.status,
                }
                for p in payments
            ],
        },
        truncated, len(payments), "payments",
    )


# ── create_fixed_cost (write) ────────────────────────────────────────

class CreateFixedCostInput(ToolInput):
    category: str = Field(min_length=1)
    amount: float = Field(gt=0)
    notes: Optional[str] = None
    month: Optional[date] = None


@tool(
    name="create_fixed_cost",
    description=(
        "Add a new monthly fixed cost entry. IMPORTANT: Always confirm with the user before creating. "
        "Describe what you will add and ask for confirmation."
    ),
    parameters={
        "type": "object",
        "properties": {
            "category": {
                "type": "string",
                "description": "Cost category (e.g., 'Ενοίκιο', 'Μισθοδοσία', 'Utilities')",
            },
            "amount": {"type": "number", "description": "Monthly cost amount in euros"},
            "notes": {"type": "string", "description": "Optional notes"},
            "month": {
                "type": "string",
                "description": "Month in YYYY-MM-DD format (first of month). Defaults to current month.",
            },
        },
        "required": ["category", "amount"],
    },
    input_model=CreateFixedCostInput,
    risk=ToolRisk.WRITE,
    category="finance",
)
async def create_fixed_cost(params: CreateFixedCostInput, ctx: ToolContext) -> dict:
    month = first_of_month(params.month or ctx.today)
    cost = FixedCost(
        tenant_id=ctx.tenant_id,
        category=params.category,
        amount=params.amount,
        notes=params.notes,
        month=month,
    )
    ctx.session.add(cost)
    await ctx.session.flush()

    return {
        "success": True,
        "message": f'Fixed cost "{cost.category}" of {format_eur(cost.amount)} added for {month.isoformat()}',
        "fixed_cost": {
            "id": cost.id,
            "category": cost.category,
            "amount": format_eur(cost.amount),
            "month": month.isoformat(),
            "notes": cost.notes,
        },
    }
