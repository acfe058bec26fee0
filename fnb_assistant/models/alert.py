"""
Alerts raised for the business, and user-defined alert rules.
"""

from typing import Optional

from sqlalchemy import String, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from .base import TenantBase, money


class Alert(TenantBase):
    __tablename__ = "alerts"

    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String, nullable=False, default="info")  # critical, warning, info
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")  # active, dismissed, resolved


class CustomAlertRule(TenantBase):
    __tablename__ = "custom_alert_rules"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String, nullable=False)  # sales, customer, smart
    condition_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    threshold_value: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    severity: Mapped[str] = mapped_column(String, nullable=False, default="info")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
