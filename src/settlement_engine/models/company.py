"""Tenant model."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from settlement_engine.models.employee import Employee


class Tenant(Base, TimestampMixin):
    """Multi-tenant container.

    ``country_code`` selects the labor-law tables used for settlements of
    the tenant's employees.
    """

    __tablename__ = "tenant"

    tenant_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False, default="CI")
    sector: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="active",
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'suspended', 'closed')", name="tenant_status_check"),
    )

    # Relationships
    employees: Mapped[list[Employee]] = relationship(back_populates="tenant")
