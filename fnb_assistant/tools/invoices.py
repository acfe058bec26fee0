"""
Invoice tools: search, overdue tracking, line items, and status changes.
"""

import logging
from datetime import date, timedelta
from typing import Literal, Optional, get_args

from sqlalchemy.orm import selectinload

from ..models import Invoice, InvoiceLineItem, Supplier
from .formatting import cap_limit, format_eur, iso, pct_change, sum_amounts, take, with_truncation
from .registry import ToolContext, ToolError, ToolInput, ToolRisk, tool

logger = logging.getLogger(__name__)

InvoiceStatus = Literal["uploaded", "processing", "extracted", "approved", "flagged", "rejected", "paid"]
INVOICE_STATUSES = list(get_args(InvoiceStatus))


def _supplier_name(inv: Invoice) -> str:
    return inv.supplier.name if inv.supplier else "Unknown"


def _invoice_summary(inv: Invoice) -> dict:
    return {
        "id": inv.id,
        "number": inv.invoice_number,
        "amount": format_eur(inv.total_amount),
        "status": inv.status,
        "supplier": _supplier_name(inv),
        "date": iso(inv.invoice_date),
        "due_date": iso(inv.due_date),
        "paid_date": iso(inv.paid_date),
        "notes": inv.notes,
    }


def _join_supplier(stmt, ctx: ToolContext):
    return stmt.join(
        Supplier,
        (Invoice.supplier_id == Supplier.id) & (Supplier.tenant_id == ctx.tenant_id),
    )


# ── query_invoices ───────────────────────────────────────────────────

class QueryInvoicesInput(ToolInput):
    status: Optional[InvoiceStatus] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    supplier_name: Optional[str] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    limit: Optional[int] = None
    order_by: Literal["invoice_date", "total_amount", "due_date"] = "invoice_date"
    ascending: bool = False


@tool(
    name="query_invoices",
    description=(
        "Search and filter invoices. Can filter by status, date range, supplier name, amount range. "
        "Returns invoice number, amount, status, supplier, dates and notes. "
        "Use this when the user asks about specific invoices, invoice history, "
        "or wants to find particular invoices."
    ),
    parameters={
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "enum": INVOICE_STATUSES,
                "description": "Filter by invoice status",
            },
            "from_date": {"type": "string", "description": "Start date (YYYY-MM-DD)"},
            "to_date": {"type": "string", "description": "End date (YYYY-MM-DD)"},
            "supplier_name": {"type": "string", "description": "Filter by supplier name (partial match)"},
            "min_amount": {"type": "number", "description": "Minimum total amount"},
            "max_amount": {"type": "number", "description": "Maximum total amount"},
            "limit": {"type": "integer", "description": "Max results to return (default 25, max 100)"},
            "order_by": {
                "type": "string",
                "enum": ["invoice_date", "total_amount", "due_date"],
                "description": "Field to sort by (default: invoice_date)",
            },
            "ascending": {"type": "boolean", "description": "Sort ascending (default: false)"},
        },
        "required": [],
    },
    input_model=QueryInvoicesInput,
    category="invoices",
)
async def query_invoices(params: QueryInvoicesInput, ctx: ToolContext) -> dict:
    stmt = ctx.select(Invoice).options(selectinload(Invoice.supplier))

    if params.status:
        stmt = stmt.where(Invoice.status == params.status)
    if params.from_date:
        stmt = stmt.where(Invoice.invoice_date >= params.from_date)
    if params.to_date:
        stmt = stmt.where(Invoice.invoice_date <= params.to_date)
    if params.min_amount is not None:
        stmt = stmt.where(Invoice.total_amount >= params.min_amount)
    if params.max_amount is not None:
        stmt = stmt.where(Invoice.total_amount <= params.max_amount)
    if params.supplier_name:
        stmt = _join_supplier(stmt, ctx).where(
            Supplier.name.icontains(params.supplier_name, autoescape=True)
        )

    column = getattr(Invoice, params.order_by)
    stmt = stmt.order_by(column.asc() if params.ascending else column.desc())

    limit = cap_limit(params.limit, default=25, maximum=100)
    rows = (await ctx.session.execute(stmt.limit(limit + 1))).scalars().all()
    invoices, truncated = take(rows, limit)

    return with_truncation(
        {
            "total_results": len(invoices),
            "invoices": [_invoice_summary(inv) for inv in invoices],
        },
        truncated, len(invoices), "invoices",
    )


# ── get_overdue_invoices ─────────────────────────────────────────────

class OverdueInvoicesInput(ToolInput):
    min_days_overdue: Optional[int] = None
    limit: Optional[int] = None


@tool(
    name="get_overdue_invoices",
    description=(
        "Get all overdue invoices (approved but unpaid past their due date) with days overdue "
        "and supplier info. Use when the user asks about overdue payments, late invoices, "
        "or payment issues."
    ),
    parameters={
        "type": "object",
        "properties": {
            "min_days_overdue": {
                "type": "integer",
                "description": "Only show invoices overdue by at least this many days",
            },
            "limit": {"type": "integer", "description": "Max results (default 20, max 50)"},
        },
        "required": [],
    },
    input_model=OverdueInvoicesInput,
    category="invoices",
)
async def get_overdue_invoices(params: OverdueInvoicesInput, ctx: ToolContext) -> dict:
    cutoff = ctx.today
    if params.min_days_overdue and params.min_days_overdue > 0:
        cutoff = ctx.today - timedelta(days=params.min_days_overdue - 1)

    stmt = (
        ctx.select(Invoice)
        .options(selectinload(Invoice.supplier))
        .where(Invoice.status == "approved", Invoice.due_date < cutoff)
        .order_by(Invoice.due_date.asc())
    )

    limit = cap_limit(params.limit, default=20, maximum=50)
    rows = (await ctx.session.execute(stmt.limit(limit + 1))).scalars().all()
    invoices, truncated = take(rows, limit)

    return with_truncation(
        {
            "overdue_count": len(invoices),
            "total_overdue": format_eur(sum_amounts(inv.total_amount for inv in invoices)),
            "invoices": [
                {
                    "id": inv.id,
                    "number": inv.invoice_number,
                    "amount": format_eur(inv.total_amount),
                    "supplier": _supplier_name(inv),
                    "due_date": iso(inv.due_date),
                    "days_overdue": (ctx.today - inv.due_date).days,
                }
                for inv in invoices
            ],
        },
        truncated, len(invoices), "overdue invoices",
    )


# ── query_invoice_line_items ─────────────────────────────────────────

class InvoiceLineItemsInput(ToolInput):
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    description: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    limit: Optional[int] = None


@tool(
    name="query_invoice_line_items",
    description=(
        "Get the individual line items (products bought, quantity, unit price, line total) "
        "extracted from supplier invoices. Filter by a specific invoice, by item description "
        "(partial match, e.g. 'tomato'), or by invoice date range. Use when the user asks what "
        "was bought, how much a specific ingredient cost on past invoices, or price history "
        "of a purchased item."
    ),
    parameters={
        "type": "object",
        "properties": {
            "invoice_id": {"type": "string", "description": "UUID of a specific invoice"},
            "invoice_number": {"type": "string", "description": "Invoice number as printed on the invoice"},
            "description": {"type": "string", "description": "Filter by item description (partial match)"},
            "from_date": {"type": "string", "description": "Invoice date from (YYYY-MM-DD)"},
            "to_date": {"type": "string", "description": "Invoice date until (YYYY-MM-DD)"},
            "limit": {"type": "integer", "description": "Max results (default 50, max 100)"},
        },
        "required": [],
    },
    input_model=InvoiceLineItemsInput,
    category="invoices",
)
async def query_invoice_line_items(params: InvoiceLineItemsInput, ctx: ToolContext) -> dict:
    stmt = (
        ctx.select(InvoiceLineItem, Invoice)
        .join(
            Invoice,
            (InvoiceLineItem.invoice_id == Invoice.id) & (Invoice.tenant_id == ctx.tenant_id),
        )
        .options(selectinload(Invoice.supplier))
    )

    if params.invoice_id:
        stmt = stmt.where(Invoice.id == params.invoice_id)
    if params.invoice_number:
        stmt = stmt.where(Invoice.invoice_number == params.invoice_number)
    if params.description:
        stmt = stmt.where(InvoiceLineItem.description.icontains(params.description, autoescape=True))
    if params.from_date:
        stmt = stmt.where(Invoice.invoice_date >= params.from_date)
    if params.to_date:
        stmt = stmt.where(Invoice.invoice_date <= params.to_date)

    stmt = stmt.order_by(Invoice.invoice_date.desc(), InvoiceLineItem.description.asc())

    limit = cap_limit(params.limit, default=50, maximum=100)
    rows = (await ctx.session.execute(stmt.limit(limit + 1))).all()
    rows, truncated = take(rows, limit)

    return with_truncation(
        {
            "total_items": len(rows),
            "total_amount": format_eur(sum_amounts(item.line_total for item, _ in rows)),
            "line_items": [
                {
                    "invoice_number": inv.invoice_number,
                    "invoice_date": iso(inv.invoice_date),
                    "supplier": _supplier_name(inv),
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_price": format_eur(item.unit_price),
                    "tax_rate": item.tax_rate,
                    "line_total": format_eur(item.line_total),
                }
                for item, inv in rows
            ],
        },
        truncated, len(rows), "line items",
    )


# ── get_price_changes ────────────────────────────────────────────────

PRICE_LOOKBACK_DAYS = 180


class PriceChangesInput(ToolInput):
    description: Optional[str] = None
    from_date: Optional[date] = None
    limit: Optional[int] = None


@tool(
    name="get_price_changes",
    description=(
        "Get purchased items whose unit price changed between supplier invoices. "
        "Shows the current vs previous unit price, the change percentage, supplier and dates, "
        "largest changes first. Use when the user asks about price increases, supplier price "
        "changes, or rising ingredient costs."
    ),
    parameters={
        "type": "object",
        "properties": {
            "description": {"type": "string", "description": "Filter by item description (partial match)"},
            "from_date": {
                "type": "string",
                "description": "Only consider invoices from this date (YYYY-MM-DD). Defaults to 180 days ago.",
            },
            "limit": {"type": "integer", "description": "Max results (default 20, max 50)"},
        },
        "required": [],
    },
    input_model=PriceChangesInput,
    category="invoices",
)
async def get_price_changes(params: PriceChangesInput, ctx: ToolContext) -> dict:
    start = params.from_date or (ctx.today - timedelta(days=PRICE_LOOKBACK_DAYS))

    stmt = (
        ctx.select(InvoiceLineItem, Invoice)
        .join(
            Invoice,
            (InvoiceLineItem.invoice_id == Invoice.id) & (Invoice.tenant_id == ctx.tenant_id),
        )
        .options(selectinload(Invoice.supplier))
        .where(
            InvoiceLineItem.unit_price.is_not(None),
            InvoiceLineItem.description.is_not(None),
            Invoice.invoice_date >= start,
        )
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
    )
    if params.description:
        stmt = stmt.where(InvoiceLineItem.description.icontains(params.description, autoescape=True))

    # newest first, so the first two sightings of an item are current and previous
    history: dict[str, list[tuple[InvoiceLineItem, Invoice]]] = {}
    for item, inv in (await ctx.session.execute(stmt)).all():
        seen = history.setdefault(item.description.strip().lower(), [])
        if len(seen) < 2:
            seen.append((item, inv))

    ranked = []
    for (current, current_inv), (previous, previous_inv) in (h for h in history.values() if len(h) == 2):
        new_price, old_price = float(current.unit_price), float(previous.unit_price)
        if new_price == old_price:
            continue
        delta = abs(new_price - old_price) / old_price if old_price > 0 else float("inf")
        ranked.append((delta, {
            "description": current.description,
            "supplier": _supplier_name(current_inv),
            "current_price": format_eur(new_price),
            "current_date": iso(current_inv.invoice_date),
            "previous_price": format_eur(old_price),
            "previous_date": iso(previous_inv.invoice_date),
            "change_pct": pct_change(new_price, old_price),
        }))

    ranked.sort(key=lambda pair: pair[0], reverse=True)
    limit = cap_limit(params.limit, default=20, maximum=50)
    changes, truncated = take([change for _, change in ranked], limit)

    return with_truncation(
        {
            "since": start.isoformat(),
            "items_changed": len(changes),
            "price_changes": changes,
        },
        truncated, len(changes), "price changes",
    )


# ── update_invoice_status (write) ────────────────────────────────────

class UpdateInvoiceStatusInput(ToolInput):
    invoice_id: str
    new_status: Literal["approved", "rejected", "flagged", "paid"]
    notes: Optional[str] = None


@tool(
    name="update_invoice_status",
    description=(
        "Update the status of an invoice (approve, reject, flag, mark as paid). "
        "IMPORTANT: Always confirm with the user before executing this action. "
        "Describe what you will do and ask for confirmation first."
    ),
    parameters={
        "type": "object",
        "properties": {
            "invoice_id": {"type": "string", "description": "UUID of the invoice to update"},
            "new_status": {
                "type": "string",
                "enum": ["approved", "rejected", "flagged", "paid"],
                "description": "New status for the invoice",
            },
            "notes": {"type": "string", "description": "Optional notes about the status change"},
        },
        "required": ["invoice_id", "new_status"],
    },
    input_model=UpdateInvoiceStatusInput,
    risk=ToolRisk.WRITE,
    category="invoices",
)
async def update_invoice_status(params: UpdateInvoiceStatusInput, ctx: ToolContext) -> dict:
    stmt = ctx.select(Invoice).where(Invoice.id == params.invoice_id)
    inv = (await ctx.session.execute(stmt)).scalar_one_or_none()
    if inv is None:
        raise ToolError(f"Invoice {params.invoice_id} not found")

    inv.status = params.new_status
    if params.new_status == "paid":
        inv.paid_date = ctx.today
    if params.notes:
        inv.notes = params.notes
    await ctx.session.flush()

    logger.info("Invoice %s → %s (tenant=%s)", inv.id, inv.status, ctx.tenant_id)
    return {
        "success": True,
        "message": f'Invoice {inv.invoice_number} status updated to "{inv.status}"',
        "invoice": {
            "id": inv.id,
            "number": inv.invoice_number,
            "status": inv.status,
            "amount": format_eur(inv.total_amount),
            "paid_date": iso(inv.paid_date),
        },
    }
