"""
Base model with tenant isolation. Every model inherits from this.
"""

import uuid
from datetime import datetime

from sqlalchemy import Numeric, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


def new_uuid():
    return str(uuid.uuid4())


def money():
    """Amount column. Returned as float; display formatting happens in the tools."""
    return Numeric(12, 2, asdecimal=False)


class TenantBase(Base):
    """Abstract base with tenant_id on every row."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=new_uuid
    )
    tenant_id: Mapped[str] = mapped_column(
        String, nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
