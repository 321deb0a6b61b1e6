"""Activity log and notification writers."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from shift_settlement.models import ActivityLog, Notification


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    return {
        key: str(value) if isinstance(value, (Decimal, UUID)) else value
        for key, value in details.items()
    }


async def record_activity(
    session: AsyncSession,
    *,
    tenant_id: UUID,
    user_id: UUID | None,
    action: str,
    resource_type: str,
    resource_id: UUID,
    description: str,
    details: dict[str, Any] | None = None,
) -> ActivityLog:
    """Append an activity log entry to the current unit of work."""
    entry = ActivityLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        description=description,
        details_json=_jsonable(details) if details else None,
    )
    session.add(entry)
    await session.flush()
    return entry


async def create_notification(
    session: AsyncSession,
    *,
    tenant_id: UUID,
    user_id: UUID,
    title: str,
    message: str,
    type: str = "info",
) -> Notification:
    notification = Notification(
        tenant_id=tenant_id,
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        is_read=False,
    )
    session.add(notification)
    await session.flush()
    return notification
