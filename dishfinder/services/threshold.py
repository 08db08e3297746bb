"""
Threshold evaluation over the report ledger (read-only)
"""
from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.models.report import DeliveryAppReport

# Distinct reporters needed before a delivery app is pulled from a restaurant
REMOVAL_THRESHOLD = 2


async def count_distinct_reporters(session: AsyncSession, restaurant_id: int, delivery_app: str) -> int:
    result = await session.execute(
        select(func.count(distinct(DeliveryAppReport.reported_by_user_id))).where(
            DeliveryAppReport.restaurant_id == restaurant_id,
            DeliveryAppReport.delivery_app == delivery_app,
        )
    )
    return result.scalar() or 0


async def meets_threshold(session: AsyncSession, restaurant_id: int, delivery_app: str) -> bool:
    return await count_distinct_reporters(session, restaurant_id, delivery_app) >= REMOVAL_THRESHOLD
