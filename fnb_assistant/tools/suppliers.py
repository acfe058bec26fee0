"""
Supplier tool: who we buy from and how much we spend with them.
"""

from datetime import date, timedelta
from typing import Literal, Optional

from sqlalchemy import func, select

from ..models import Invoice, Supplier
from .formatting import NOT_AVAILABLE, cap_limit, format_eur, format_pct, iso, take, with_truncation
from .registry import ToolContext, ToolInput, tool

DEFAULT_LOOKBACK_DAYS = 90


class QuerySuppliersInput(ToolInput):
    name: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    sort_by: Literal["total_spent", "invoice_count", "name"] = "total_spent"
    limit: Optional[int] = None


@tool(
    name="query_suppliers",
    description=(
        "Get supplier information including spending totals, share of total spend, average invoice, "
        "invoice counts, and last invoice date. "
        "Use when the user asks about suppliers, vendor performance, dependency on a supplier, "
        "or spending by supplier."
    ),
    parameters={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Filter by supplier name (partial match)"},
            "from_date": {
                "type": "string",
                "description": "Calculate spending from this date (YYYY-MM-DD). Defaults to 90 days ago.",
            },
            "to_date": {
                "type": "string",
                "description": "Calculate spending until this date (YYYY-MM-DD). Defaults to today.",
            },
            "sort_by": {
                "type": "string",
                "enum": ["total_spent", "invoice_count", "name"],
                "description": "Sort suppliers by (default: total_spent)",
            },
            "limit": {"type": "integer", "description": "Max results (default 20, max 50)"},
        },
        "required": [],
    },
    input_model=QuerySuppliersInput,
    category="suppliers",
)
async def query_suppliers(params: QuerySuppliersInput, ctx: ToolContext) -> dict:
    start = params.from_date or (ctx.today - timedelta(days=DEFAULT_LOOKBACK_DAYS))
    end = params.to_date or ctx.today

    stmt = ctx.select(Supplier)
    if params.name:
        stmt = stmt.where(Supplier.name.icontains(params.name, autoescape=True))
    suppliers = (await ctx.session.execute(stmt)).scalars().all()

    spend_stmt = ctx.scoped(
        select(
            Invoice.supplier_id,
            func.coalesce(func.sum(Invoice.total_amount), 0),
            func.count(Invoice.id),
            func.max(Invoice.invoice_date),
        ),
        Invoice,
    ).where(
        Invoice.supplier_id.in_([s.id for s in suppliers]),
        Invoice.invoice_date >= start,
        Invoice.invoice_date <= end,
    ).group_by(Invoice.supplier_id)

    grand_stmt = ctx.scoped(select(func.coalesce(func.sum(Invoice.total_amount), 0)), Invoice).where(
        Invoice.invoice_date >= start,
        Invoice.invoice_date <= end,
    )
    grand_total = float((await ctx.session.execute(grand_stmt)).scalar() or 0)

    spending = {
        supplier_id: (float(total or 0), int(count), last)
        for supplier_id, total, count, last in (await ctx.session.execute(spend_stmt)).all()
    }

    rows = []
    for s in suppliers:
        total, count, last = spending.get(s.id, (0.0, 0, None))
        rows.append({
            "id": s.id,
            "name": s.name,
            "afm": s.afm,
            "contact": s.contact_person,
            "email": s.email,
            "total_spent": total,
            "invoice_count": count,
            "last_invoice": iso(last),
            "share_of_spend": format_pct(total / grand_total * 100) if grand_total else NOT_AVAILABLE,
            "average_invoice": format_eur(total / count if count else 0),
        })

    if params.sort_by == "name":
        rows.sort(key=lambda r: (r["name"] or "").lower())
    else:
        rows.sort(key=lambda r: r[params.sort_by], reverse=True)

    limit = cap_limit(params.limit, default=20, maximum=50)
    rows, truncated = take(rows, limit)
    for r in rows:
        r["total_spent"] = format_eur(r["total_spent"])

    return with_truncation(
        {
            "period": f"{start.isoformat()} to {end.isoformat()}",
            "total_spent": format_eur(grand_total),
            "total_suppliers": len(rows),
            "suppliers": rows,
        },
        truncated, len(rows), "suppliers",
    )
