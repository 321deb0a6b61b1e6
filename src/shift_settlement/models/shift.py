"""Shift model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shift_settlement.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from shift_settlement.models.company import Client, Tenant, User


class Shift(Base, TimestampMixin):
    """A booked support shift.

    start_time/end_time are the scheduled times used for billing and are
    never overwritten by the completion signal. The actual completion time
    arrives separately as a submission timestamp.
    """

    __tablename__ = "shift"

    shift_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("client.client_id"),
        nullable=True,
    )
    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String, nullable=False, default="Shift")
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")
    staff_ratio: Mapped[str] = mapped_column(String, nullable=False, default="1:1")
    funding_category: Mapped[str | None] = mapped_column(String, nullable=True)
    # Explicit pricing type; wins over time-of-day classification when set
    shift_type: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'cancelled')",
            name="shift_status_check",
        ),
        CheckConstraint(
            "funding_category IS NULL OR funding_category IN "
            "('CommunityAccess', 'SIL', 'CapacityBuilding')",
            name="shift_funding_category_check",
        ),
        CheckConstraint(
            "shift_type IS NULL OR shift_type IN ('AM', 'PM', 'ActiveNight', 'Sleepover')",
            name="shift_type_check",
        ),
    )

    # Relationships
    tenant: Mapped[Tenant] = relationship()
    client: Mapped[Client | None] = relationship(back_populates="shifts")
    user: Mapped[User | None] = relationship(back_populates="shifts")
