"""
Revenue, expenses, fixed costs, cash positions and scheduled payments.
"""

from datetime import date
from typing import Optional

from sqlalchemy import String, Text, Date
from sqlalchemy.orm import Mapped, mapped_column

from .base import TenantBase, money


class RevenueEntry(TenantBase):
    __tablename__ = "revenue_entries"

    amount: Mapped[float] = mapped_column(money(), nullable=False, default=0)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class ExpenseEntry(TenantBase):
    __tablename__ = "expense_entries"

    amount: Mapped[float] = mapped_column(money(), nullable=False, default=0)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class FixedCost(TenantBase):
    __tablename__ = "fixed_costs"

    category: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[float] = mapped_column(money(), nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    month: Mapped[date] = mapped_column(Date, nullable=False, index=True)  # first of month


class CashPosition(TenantBase):
    __tablename__ = "cash_positions"

    cash_on_hand: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    bank_balance: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    total_cash: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    recorded_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)


class ScheduledPayment(TenantBase):
    __tablename__ = "scheduled_payments"

    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    amount: Mapped[float] = mapped_column(money(), nullable=False, default=0)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    # pending, completed, cancelled
