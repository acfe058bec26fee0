"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import TenantBase
from .invoice import Supplier, Invoice, InvoiceLineItem
from .finance import RevenueEntry, ExpenseEntry, FixedCost, CashPosition, ScheduledPayment
from .catalog import Product, Ingredient, ProductIngredient
from .alert import Alert, CustomAlertRule

__all__ = [
    "TenantBase",
    "Supplier", "Invoice", "InvoiceLineItem",
    "RevenueEntry", "ExpenseEntry", "FixedCost", "CashPosition", "ScheduledPayment",
    "Product", "Ingredient", "ProductIngredient",
    "Alert", "CustomAlertRule",
]
