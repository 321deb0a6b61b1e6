"""Annual ScHADS wage increase across every tenant's pay scales.

Rates are superseded in place: new = round(old x (1 + pct/100), 2).
Validation runs before any tenant is touched; each tenant is then
updated in its own transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shift_settlement.calculators.policies import to_money
from shift_settlement.database import session_scope
from shift_settlement.exceptions import WageIncreaseValidationError
from shift_settlement.models import ActivityLog, PayScale, Tenant
from shift_settlement.services.audit import record_activity

logger = logging.getLogger(__name__)

WAGE_INCREASE_ACTION = "schads_wage_increase"
MAX_INCREASE_PERCENTAGE = Decimal("50")
# Warn when the effective date is further than this from 1 July
EFFECTIVE_DATE_TOLERANCE_DAYS = 90
DUE_WINDOW_DAYS = 30
PREVIEW_SAMPLE_SIZE = 6


@dataclass(frozen=True)
class WageIncreaseConfig:
    effective_date: date
    increase_percentage: Decimal
    description: str
    applied_by: UUID | None = None


@dataclass(frozen=True)
class UpdateResult:
    """Outcome for one tenant."""

    tenant_id: UUID
    tenant_name: str
    success: bool
    rows_updated: int = 0
    error: str | None = None


@dataclass(frozen=True)
class RatePreview:
    level: int
    pay_point: int
    employment_type: str
    old_rate: Decimal
    new_rate: Decimal

    @property
    def increase(self) -> Decimal:
        return self.new_rate - self.old_rate


@dataclass(frozen=True)
class WageIncreasePreview:
    increase_percentage: Decimal
    total_pay_scales: int
    tenant_count: int
    sample: list[RatePreview] = field(default_factory=list)


def calculate_increased_rate(old_rate: Decimal, increase_percentage: Decimal) -> Decimal:
    return to_money(old_rate * (1 + increase_percentage / 100))


def get_next_wage_increase_date(today: date | None = None) -> date:
    """Next 1 July on or after today."""
    today = today or date.today()
    this_year = date(today.year, 7, 1)
    return this_year if today <= this_year else date(today.year + 1, 7, 1)


def is_wage_increase_due(today: date | None = None) -> bool:
    """True within 30 days of the next annual increase."""
    today = today or date.today()
    return (get_next_wage_increase_date(today) - today).days <= DUE_WINDOW_DAYS


def validate_wage_increase(
    increase_percentage: Decimal,
    effective_date: date,
    today: date | None = None,
) -> list[str]:
    """Return validation errors; an empty list means the increase may be applied."""
    today = today or date.today()
    errors = []
    if increase_percentage <= 0 or increase_percentage > MAX_INCREASE_PERCENTAGE:
        errors.append(
            f"Increase percentage must be greater than 0% and at most {MAX_INCREASE_PERCENTAGE}%"
        )
    if effective_date < today:
        errors.append("Effective date cannot be in the past")
    return errors


def wage_increase_warnings(effective_date: date, today: date | None = None) -> list[str]:
    """Non-blocking concerns about an otherwise valid increase."""
    next_date = get_next_wage_increase_date(today)
    if abs((effective_date - next_date).days) > EFFECTIVE_DATE_TOLERANCE_DAYS:
        return [
            f"Effective date {effective_date} is more than {EFFECTIVE_DATE_TOLERANCE_DAYS} days "
            f"from the annual increase date {next_date}"
        ]
    return []


class WageScaleService:
    """Applies and previews the yearly pay scale increase.

    Takes a session factory rather than a session: every tenant is
    committed or rolled back on its own.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def apply_yearly_wage_increase(
        self,
        config: WageIncreaseConfig,
        today: date | None = None,
    ) -> list[UpdateResult]:
        """Raise every pay scale rate in every tenant.

        Raises:
            WageIncreaseValidationError: Before any tenant is updated
        """
        errors = validate_wage_increase(config.increase_percentage, config.effective_date, today)
        if errors:
            raise WageIncreaseValidationError(errors)
        for warning in wage_increase_warnings(config.effective_date, today):
            logger.warning(warning)

        async with session_scope(self.session_factory) as session:
            result = await session.execute(select(Tenant).order_by(Tenant.name))
            tenants = [(tenant.tenant_id, tenant.name) for tenant in result.scalars().all()]

        results = []
        for tenant_id, tenant_name in tenants:
            try:
                async with session_scope(self.session_factory) as session:
                    rows = await self._apply_to_tenant(session, tenant_id, config)
            except Exception as e:
                logger.exception("Wage increase failed for tenant %s (%s)", tenant_id, tenant_name)
                results.append(
                    UpdateResult(tenant_id=tenant_id, tenant_name=tenant_name, success=False, error=str(e))
                )
                continue

            logger.info(
                "Applied %s%% wage increase to %d pay scales for tenant %s",
                config.increase_percentage,
                rows,
                tenant_name,
            )
            results.append(
                UpdateResult(tenant_id=tenant_id, tenant_name=tenant_name, success=True, rows_updated=rows)
            )
        return results

    async def preview_wage_increase(
        self,
        increase_percentage: Decimal,
        sample_size: int = PREVIEW_SAMPLE_SIZE,
    ) -> WageIncreasePreview:
        """Run the increase arithmetic on a sample of rates without persisting."""
        async with self.session_factory() as session:
            totals = await session.execute(
                select(func.count(PayScale.pay_scale_id), func.count(func.distinct(PayScale.tenant_id)))
            )
            total_pay_scales, tenant_count = totals.one()

            result = await session.execute(
                select(PayScale)
                .order_by(PayScale.tenant_id, PayScale.level, PayScale.pay_point, PayScale.employment_type)
                .limit(sample_size)
            )
            sample = [
                RatePreview(
                    level=scale.level,
                    pay_point=scale.pay_point,
                    employment_type=scale.employment_type,
                    old_rate=scale.hourly_rate,
                    new_rate=calculate_increased_rate(scale.hourly_rate, increase_percentage),
                )
                for scale in result.scalars().all()
            ]

        return WageIncreasePreview(
            increase_percentage=increase_percentage,
            total_pay_scales=total_pay_scales,
            tenant_count=tenant_count,
            sample=sample,
        )

    async def get_wage_increase_history(
        self,
        tenant_id: UUID | None = None,
        limit: int = 50,
    ) -> list[ActivityLog]:
        """Past wage increases, newest first."""
        stmt = select(ActivityLog).where(ActivityLog.action == WAGE_INCREASE_ACTION)
        if tenant_id is not None:
            stmt = stmt.where(ActivityLog.tenant_id == tenant_id)
        stmt = stmt.order_by(ActivityLog.created_at.desc()).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _apply_to_tenant(
        self,
        session: AsyncSession,
        tenant_id: UUID,
        config: WageIncreaseConfig,
    ) -> int:
        result = await session.execute(select(PayScale).where(PayScale.tenant_id == tenant_id))
        scales = result.scalars().all()
        for scale in scales:
            scale.hourly_rate = calculate_increased_rate(scale.hourly_rate, config.increase_percentage)
            scale.effective_date = config.effective_date
        await session.flush()

        await record_activity(
            session,
            tenant_id=tenant_id,
            user_id=config.applied_by,
            action=WAGE_INCREASE_ACTION,
            resource_type="pay_scale",
            resource_id=tenant_id,
            description=(
                f"Applied {config.increase_percentage}% ScHADS wage increase to "
                f"{len(scales)} pay scales: {config.description}"
            ),
            details={
                "increase_percentage": config.increase_percentage,
                "effective_date": config.effective_date.isoformat(),
                "rows_updated": len(scales),
            },
        )
        return len(scales)
