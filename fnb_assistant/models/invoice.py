"""
Suppliers, invoices and their extracted line items.
"""

from datetime import date
from typing import Optional

from sqlalchemy import String, Text, Date, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import TenantBase, money


class Supplier(TenantBase):
    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(String, nullable=False)
    afm: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # Greek tax id
    contact_person: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    invoices: Mapped[list["Invoice"]] = relationship(back_populates="supplier")


class Invoice(TenantBase):
    __tablename__ = "invoices"

    supplier_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    invoice_number: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    total_amount: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="uploaded")
    # uploaded, processing, extracted, approved, flagged, rejected, paid
    invoice_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    supplier: Mapped[Optional["Supplier"]] = relationship(back_populates="invoices")
    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
    )


class InvoiceLineItem(TenantBase):
    __tablename__ = "invoice_line_items"

    invoice_id: Mapped[str] = mapped_column(
        String, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    quantity: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    unit_price: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    tax_rate: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    line_total: Mapped[Optional[float]] = mapped_column(money(), nullable=True)

    invoice: Mapped["Invoice"] = relationship(back_populates="line_items")
