"""
Dish availability writes and list/detail serialization.

Owner edits go through sync_availability, which keeps the channel tree in
shape: at most one channel per type, apps only under Online.
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.models.dish import Dish, DishAvailabilityChannel, DishDeliveryApp, ChannelType
from dishfinder.models.restaurant import Restaurant
from dishfinder.models.wishlist import WishlistItem
from dishfinder.services.availability import Availability, classify_many
from dishfinder.utils.helpers import distance_to

logger = logging.getLogger(__name__)


class AvailabilityConflict(ValueError):
    pass


def check_availability_choice(restaurant: Restaurant, has_in_store: bool, delivery_apps: Sequence[str]) -> None:
    if not has_in_store and not delivery_apps:
        raise AvailabilityConflict("Choose In-Store, at least one delivery app, or both")
    if has_in_store and restaurant.is_cloud_kitchen:
        raise AvailabilityConflict("Cloud kitchens are delivery-only and cannot offer In-Store")


async def _channels_by_type(db: AsyncSession, dish_id: int) -> Dict[ChannelType, DishAvailabilityChannel]:
    result = await db.execute(
        select(DishAvailabilityChannel).where(DishAvailabilityChannel.dish_id == dish_id)
    )
    return {ChannelType(c.channel): c for c in result.scalars().all()}


async def _drop_channel(db: AsyncSession, channel_id: int) -> None:
    await db.execute(delete(DishDeliveryApp).where(DishDeliveryApp.availability_channel_id == channel_id))
    await db.execute(delete(DishAvailabilityChannel).where(DishAvailabilityChannel.id == channel_id))


async def sync_availability(db: AsyncSession, dish_id: int, has_in_store: bool, delivery_apps: Sequence[str]) -> None:
    """Make the dish's channels match the requested availability. Does not commit."""
    channels = await _channels_by_type(db, dish_id)

    in_store = channels.get(ChannelType.IN_STORE)
    if has_in_store and in_store is None:
        db.add(DishAvailabilityChannel(dish_id=dish_id, channel=ChannelType.IN_STORE))
    elif not has_in_store and in_store is not None:
        await _drop_channel(db, in_store.id)

    online = channels.get(ChannelType.ONLINE)
    if not delivery_apps:
        if online is not None:
            await _drop_channel(db, online.id)
        await db.flush()
        return

    if online is None:
        online = DishAvailabilityChannel(dish_id=dish_id, channel=ChannelType.ONLINE)
        db.add(online)
        await db.flush()

    result = await db.execute(
        select(DishDeliveryApp.delivery_app).where(DishDeliveryApp.availability_channel_id == online.id)
    )
    current = set(result.scalars().all())
    wanted = list(dict.fromkeys(delivery_apps))

    stale = current - set(wanted)
    if stale:
        await db.execute(
            delete(DishDeliveryApp).where(
                DishDeliveryApp.availability_channel_id == online.id,
                DishDeliveryApp.delivery_app.in_(stale),
            )
        )
    for app in wanted:
        if app not in current:
            db.add(DishDeliveryApp(dish_id=dish_id, availability_channel_id=online.id, delivery_app=app))
    await db.flush()


async def delete_dish_rows(db: AsyncSession, dish_id: int) -> None:
    """Delete a dish and everything it owns. Does not commit."""
    await db.execute(delete(WishlistItem).where(WishlistItem.dish_id == dish_id))
    await db.execute(delete(DishDeliveryApp).where(DishDeliveryApp.dish_id == dish_id))
    await db.execute(delete(DishAvailabilityChannel).where(DishAvailabilityChannel.dish_id == dish_id))
    await db.execute(delete(Dish).where(Dish.id == dish_id))


def _restaurant_summary(r: Restaurant) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "city": r.city,
        "source_type": r.source_type,
        "place_id": r.place_id,
        "latitude": r.latitude,
        "longitude": r.longitude,
        "is_cloud_kitchen": r.is_cloud_kitchen,
    }


def serialize_dish(dish: Dish, availability: Availability, distance_km: Optional[float] = None) -> dict:
    return {
        "id": dish.id,
        "user_id": dish.user_id,
        "author_name": (dish.user.name if dish.user and dish.user.name else "A User"),
        "restaurant": _restaurant_summary(dish.restaurant),
        "dish_name": dish.dish_name,
        "price": dish.price,
        "protein_source": dish.protein_source,
        "taste": dish.taste,
        "protein_content": dish.protein_content,
        "satisfaction": dish.satisfaction,
        "comment": dish.comment,
        "image_url": dish.image_url,
        "availability": availability.to_dict(),
        "distance_km": distance_km,
        "created_at": dish.created_at,
    }


async def serialize_dishes(
    db: AsyncSession,
    dishes: Sequence[Dish],
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> List[dict]:
    availability = await classify_many(db, [d.id for d in dishes])
    return [
        serialize_dish(
            d,
            availability.get(d.id, Availability()),
            distance_to(lat, lng, d.restaurant.latitude, d.restaurant.longitude),
        )
        for d in dishes
    ]
