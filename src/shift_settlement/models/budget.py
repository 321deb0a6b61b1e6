"""NDIS budget, pricing and budget transaction models."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import InstrumentedAttribute, Mapped, mapped_column, relationship

from shift_settlement.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from shift_settlement.models.company import Client


class NdisBudget(Base, TimestampMixin):
    """Per-client funding with three independent category balances."""

    __tablename__ = "ndis_budget"

    budget_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="CASCADE"),
        nullable=False,
    )

    community_access_allocated: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    community_access_remaining: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    sil_allocated: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    sil_remaining: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    capacity_building_allocated: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    capacity_building_remaining: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    # Shift type -> client-specific hourly rate
    price_overrides: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "client_id", name="ndis_budget_tenant_client_unique"),
        CheckConstraint("community_access_remaining >= 0", name="ndis_budget_ca_nonneg"),
        CheckConstraint("sil_remaining >= 0", name="ndis_budget_sil_nonneg"),
        CheckConstraint("capacity_building_remaining >= 0", name="ndis_budget_cb_nonneg"),
    )

    # Relationships
    client: Mapped[Client] = relationship(back_populates="budget")
    transactions: Mapped[list[BudgetTransaction]] = relationship(back_populates="budget")

    @classmethod
    def remaining_column(cls, category: str) -> InstrumentedAttribute[Decimal]:
        """Return the remaining-balance column for a funding category."""
        columns = {
            "CommunityAccess": cls.community_access_remaining,
            "SIL": cls.sil_remaining,
            "CapacityBuilding": cls.capacity_building_remaining,
        }
        try:
            return columns[category]
        except KeyError:
            raise ValueError(f"Unknown funding category '{category}'") from None

    def remaining_for(self, category: str) -> Decimal:
        """Current remaining balance for a funding category."""
        return getattr(self, self.remaining_column(category).key)


class NdisPricing(Base, TimestampMixin):
    """Tenant-wide hourly rate by shift type and staff ratio."""

    __tablename__ = "ndis_pricing"

    pricing_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    shift_type: Mapped[str] = mapped_column(String, nullable=False)
    ratio: Mapped[str] = mapped_column(String, nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "shift_type", "ratio", name="ndis_pricing_key_unique"),
        CheckConstraint(
            "shift_type IN ('AM', 'PM', 'ActiveNight', 'Sleepover')",
            name="ndis_pricing_shift_type_check",
        ),
    )


class BudgetTransaction(Base, TimestampMixin):
    """Append-only record of a budget deduction or its reversal.

    A shift is deducted at most once and reversed at most once.
    """

    __tablename__ = "budget_transaction"

    transaction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    budget_id: Mapped[UUID] = mapped_column(
        ForeignKey("ndis_budget.budget_id", ondelete="RESTRICT"),
        nullable=False,
    )
    shift_id: Mapped[UUID] = mapped_column(
        ForeignKey("shift.shift_id", ondelete="RESTRICT"),
        nullable=False,
    )
    transaction_type: Mapped[str] = mapped_column(String, nullable=False, default="deduction")
    category: Mapped[str] = mapped_column(String, nullable=False)
    shift_type: Mapped[str] = mapped_column(String, nullable=False)
    ratio: Mapped[str] = mapped_column(String, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("shift_id", "transaction_type", name="budget_transaction_shift_unique"),
        CheckConstraint(
            "transaction_type IN ('deduction', 'reversal')",
            name="budget_transaction_type_check",
        ),
        CheckConstraint("amount > 0", name="budget_transaction_amount_positive"),
    )

    # Relationships
    budget: Mapped[NdisBudget] = relationship(back_populates="transactions")
