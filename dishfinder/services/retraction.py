"""
Availability retraction - pulls a delivery app from every dish at a restaurant.

Step A deletes the app from each dish's Online channel. Step B, for cloud
kitchens only, deletes Online channels left with no apps: a delivery-only
restaurant has no other way to serve the dish. Regular restaurants keep the
empty channel.

Each dish is committed on its own. A failing dish is rolled back and logged
and the loop moves on; whatever was removed stays removed. The next report
that meets the threshold runs the cascade again and finishes the job, since
every delete is keyed and absent rows are skipped.

Callers are expected to have authenticated the reporter already.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select, delete, exists
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.models.dish import Dish, DishAvailabilityChannel, DishDeliveryApp, ChannelType
from dishfinder.models.restaurant import Restaurant

logger = logging.getLogger(__name__)


@dataclass
class RetractionResult:
    restaurant_id: int
    delivery_app: str
    completed: bool = False
    apps_deleted: int = 0
    channels_deleted: int = 0
    failed_dish_ids: List[int] = field(default_factory=list)

    @property
    def removed(self) -> bool:
        """The cascade reached every dish without a storage error"""
        return self.completed and not self.failed_dish_ids

    def _mark_failed(self, dish_id: int) -> None:
        if dish_id not in self.failed_dish_ids:
            self.failed_dish_ids.append(dish_id)


async def _dish_ids_for_restaurant(session: AsyncSession, restaurant_id: int) -> List[int]:
    result = await session.execute(
        select(Dish.id).where(Dish.restaurant_id == restaurant_id).order_by(Dish.id)
    )
    return list(result.scalars().all())


async def _online_channel_id(session: AsyncSession, dish_id: int) -> Optional[int]:
    result = await session.execute(
        select(DishAvailabilityChannel.id).where(
            DishAvailabilityChannel.dish_id == dish_id,
            DishAvailabilityChannel.channel == ChannelType.ONLINE,
        )
    )
    return result.scalars().first()


async def _is_cloud_kitchen(session: AsyncSession, restaurant_id: int) -> Optional[bool]:
    result = await session.execute(
        select(Restaurant.is_cloud_kitchen).where(Restaurant.id == restaurant_id)
    )
    row = result.first()
    return None if row is None else bool(row[0])


async def _remove_app_from_dishes(
    session: AsyncSession, dish_ids: List[int], outcome: RetractionResult
) -> None:
    for dish_id in dish_ids:
        try:
            channel_id = await _online_channel_id(session, dish_id)
            if channel_id is None:
                continue

            deleted = await session.execute(
                delete(DishDeliveryApp).where(
                    DishDeliveryApp.availability_channel_id == channel_id,
                    DishDeliveryApp.delivery_app == outcome.delivery_app,
                )
            )
            await session.commit()
            outcome.apps_deleted += deleted.rowcount or 0
        except SQLAlchemyError as e:
            await session.rollback()
            outcome._mark_failed(dish_id)
            logger.error(f"Error removing delivery app {outcome.delivery_app} from dish {dish_id}: {e}")


async def _drop_empty_online_channels(
    session: AsyncSession, dish_ids: List[int], outcome: RetractionResult
) -> None:
    for dish_id in dish_ids:
        try:
            channel_id = await _online_channel_id(session, dish_id)
            if channel_id is None:
                continue

            # Only delete while no app rows remain under the channel
            deleted = await session.execute(
                delete(DishAvailabilityChannel).where(
                    DishAvailabilityChannel.id == channel_id,
                    ~exists().where(DishDeliveryApp.availability_channel_id == channel_id),
                )
            )
            await session.commit()
            if deleted.rowcount:
                outcome.channels_deleted += deleted.rowcount
                logger.info(f"Removed Online channel from cloud kitchen dish {dish_id} (no apps remaining)")
        except SQLAlchemyError as e:
            await session.rollback()
            outcome._mark_failed(dish_id)
            logger.error(f"Error deleting Online channel for dish {dish_id}: {e}")


async def retract_delivery_app(
    session: AsyncSession, restaurant_id: int, delivery_app: str
) -> RetractionResult:
    """Remove delivery_app from every dish at restaurant_id, then clean up cloud-kitchen channels."""
    outcome = RetractionResult(restaurant_id=restaurant_id, delivery_app=delivery_app)

    try:
        dish_ids = await _dish_ids_for_restaurant(session, restaurant_id)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error fetching dishes for restaurant {restaurant_id}: {e}")
        return outcome

    await _remove_app_from_dishes(session, dish_ids, outcome)

    try:
        cloud_kitchen = await _is_cloud_kitchen(session, restaurant_id)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error fetching restaurant {restaurant_id}: {e}")
        return outcome

    if cloud_kitchen is None:
        logger.error(f"Restaurant {restaurant_id} not found during retraction of {delivery_app}")
        return outcome

    if cloud_kitchen:
        await _drop_empty_online_channels(session, dish_ids, outcome)

    outcome.completed = True
    logger.info(
        f"Retracted {delivery_app} at restaurant {restaurant_id}: "
        f"{outcome.apps_deleted} app rows, {outcome.channels_deleted} channels removed"
        + (f", failed dishes {outcome.failed_dish_ids}" if outcome.failed_dish_ids else "")
    )
    return outcome
