"""Tenant, staff and client models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shift_settlement.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from shift_settlement.models.budget import NdisBudget
    from shift_settlement.models.payroll import PayScale
    from shift_settlement.models.shift import Shift


class Tenant(Base, TimestampMixin):
    """Multi-tenant container (one provider organisation)."""

    __tablename__ = "tenant"

    tenant_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="active",
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'suspended', 'closed')", name="tenant_status_check"),
    )

    # Relationships
    users: Mapped[list[User]] = relationship(back_populates="tenant")
    clients: Mapped[list[Client]] = relationship(back_populates="tenant")
    pay_scales: Mapped[list[PayScale]] = relationship(back_populates="tenant")


class User(Base, TimestampMixin):
    """Staff member who can be assigned to shifts.

    employment_type is stored as entered; it is normalized to
    EmploymentType at the point of use.
    """

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    employment_type: Mapped[str | None] = mapped_column(String, nullable=True)
    pay_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pay_point: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="app_user_status_check",
        ),
    )

    # Relationships
    tenant: Mapped[Tenant] = relationship(back_populates="users")
    shifts: Mapped[list[Shift]] = relationship(back_populates="user")


class Client(Base, TimestampMixin):
    """NDIS participant receiving support."""

    __tablename__ = "client"

    client_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    ndis_number: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "ndis_number", name="client_tenant_ndis_unique"),
    )

    # Relationships
    tenant: Mapped[Tenant] = relationship(back_populates="clients")
    budget: Mapped[NdisBudget | None] = relationship(back_populates="client")
    shifts: Mapped[list[Shift]] = relationship(back_populates="client")
