"""Billable and payable hourly rate resolution."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shift_settlement.calculators.types import EmploymentType, ShiftType
from shift_settlement.config import get_settings
from shift_settlement.exceptions import RateNotFoundError
from shift_settlement.models import NdisPricing, PayScale, User

logger = logging.getLogger(__name__)


def _positive_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount > 0 else None


class RateResolver:
    """Resolves the hourly rate billed to a client's budget.

    Rate selection priority:
    1. The client budget's price override for the shift type
    2. The tenant's NDIS pricing table for (shift type, staff ratio)

    A source only counts if it yields a positive rate.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_billable_rate(
        self,
        shift_type: ShiftType,
        ratio: str,
        tenant_id: UUID,
        price_overrides: dict[str, Any] | None = None,
    ) -> Decimal:
        """Resolve the billable hourly rate.

        Raises:
            RateNotFoundError: If neither source yields a positive rate
        """
        override = _positive_decimal((price_overrides or {}).get(shift_type.value))
        if override is not None:
            logger.debug("Using price override %s for %s", override, shift_type.value)
            return override

        pricing = await self.get_pricing(shift_type, ratio, tenant_id)
        rate = _positive_decimal(pricing.rate) if pricing is not None else None
        if rate is None:
            raise RateNotFoundError(shift_type.value, ratio, tenant_id)
        return rate

    async def get_pricing(
        self,
        shift_type: ShiftType,
        ratio: str,
        tenant_id: UUID,
    ) -> NdisPricing | None:
        result = await self.session.execute(
            select(NdisPricing).where(
                NdisPricing.tenant_id == tenant_id,
                NdisPricing.shift_type == shift_type.value,
                NdisPricing.ratio == ratio,
            )
        )
        return result.scalar_one_or_none()


class PayScaleResolver:
    """Resolves a staff member's hourly pay rate from the pay scale matrix.

    Falls back to the statutory minimum rate when the user has no level,
    pay point or employment type, or when no pay scale row matches.
    """

    def __init__(self, session: AsyncSession, minimum_rate: Decimal | None = None):
        self.session = session
        self.minimum_rate = (
            minimum_rate if minimum_rate is not None else get_settings().statutory_minimum_rate
        )

    async def resolve_for_user(self, user: User) -> Decimal:
        if user.pay_level is None or user.pay_point is None or not user.employment_type:
            logger.warning(
                "User %s missing pay scale data, using minimum rate %s",
                user.user_id,
                self.minimum_rate,
            )
            return self.minimum_rate

        scale = await self.get_pay_scale(
            tenant_id=user.tenant_id,
            level=user.pay_level,
            pay_point=user.pay_point,
            employment_type=EmploymentType.normalize(user.employment_type),
        )
        if scale is None:
            logger.warning(
                "Pay scale not found for user %s (level %s, point %s), using minimum rate %s",
                user.user_id,
                user.pay_level,
                user.pay_point,
                self.minimum_rate,
            )
            return self.minimum_rate
        return scale.hourly_rate

    async def get_pay_scale(
        self,
        tenant_id: UUID,
        level: int,
        pay_point: int,
        employment_type: EmploymentType,
    ) -> PayScale | None:
        result = await self.session.execute(
            select(PayScale).where(
                PayScale.tenant_id == tenant_id,
                PayScale.level == level,
                PayScale.pay_point == pay_point,
                PayScale.employment_type == employment_type.value,
            )
        )
        return result.scalar_one_or_none()
