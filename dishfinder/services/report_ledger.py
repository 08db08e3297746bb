"""
Report ledger - append-only record of (restaurant, delivery app, reporter) triples.

Inserting the same triple twice is a no-op, not an error. The ledger never
evaluates thresholds itself; that is a separate read step.
"""
import logging
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.models.report import DeliveryAppReport

logger = logging.getLogger(__name__)


class LedgerOutcome(str, Enum):
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    FAILED = "failed"

    @property
    def accepted(self) -> bool:
        return self is not LedgerOutcome.FAILED


async def _report_exists(
    session: AsyncSession, restaurant_id: int, delivery_app: str, user_id: int
) -> bool:
    result = await session.execute(
        select(DeliveryAppReport.id).where(
            DeliveryAppReport.restaurant_id == restaurant_id,
            DeliveryAppReport.delivery_app == delivery_app,
            DeliveryAppReport.reported_by_user_id == user_id,
        )
    )
    return result.first() is not None


async def submit_report(
    session: AsyncSession, restaurant_id: int, delivery_app: str, user_id: int
) -> LedgerOutcome:
    """Insert one ledger row in its own transaction."""
    session.add(DeliveryAppReport(
        restaurant_id=restaurant_id,
        delivery_app=delivery_app,
        reported_by_user_id=user_id,
    ))
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        try:
            duplicate = await _report_exists(session, restaurant_id, delivery_app, user_id)
        except SQLAlchemyError:
            duplicate = False
        if duplicate:
            logger.debug(f"User {user_id} already reported {delivery_app} at restaurant {restaurant_id}")
            return LedgerOutcome.DUPLICATE
        logger.error(f"Ledger insert rejected for {delivery_app} at restaurant {restaurant_id}: {e}")
        return LedgerOutcome.FAILED
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Ledger insert failed for {delivery_app} at restaurant {restaurant_id}: {e}")
        return LedgerOutcome.FAILED

    logger.info(f"User {user_id} reported {delivery_app} unavailable at restaurant {restaurant_id}")
    return LedgerOutcome.RECORDED
