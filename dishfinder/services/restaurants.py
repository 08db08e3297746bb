"""
Restaurant lookup and deduplicating creation
"""
import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.models.restaurant import Restaurant, RestaurantSource

logger = logging.getLogger(__name__)


async def find_existing(
    db: AsyncSession,
    source_type: RestaurantSource,
    city: str,
    place_id: Optional[str] = None,
    name: Optional[str] = None,
) -> Optional[Restaurant]:
    """Google places match on place_id; manual entries on name containment within the city"""
    if source_type == RestaurantSource.GOOGLE_MAPS:
        if not place_id:
            return None
        result = await db.execute(select(Restaurant).where(Restaurant.place_id == place_id))
        return result.scalar_one_or_none()

    if not name:
        return None
    pattern = f"%{name.strip().lower()}%"
    result = await db.execute(
        select(Restaurant)
        .where(
            Restaurant.source_type == RestaurantSource.MANUAL,
            Restaurant.city == city,
            func.lower(Restaurant.name).like(pattern),
        )
        .order_by(Restaurant.id)
    )
    return result.scalars().first()


async def find_or_create_restaurant(db: AsyncSession, source_type: RestaurantSource, city: str, **fields) -> tuple[Restaurant, bool]:
    """Return (restaurant, created)"""
    existing = await find_existing(
        db, source_type, city, place_id=fields.get("place_id"), name=fields.get("name")
    )
    if existing:
        return existing, False

    if source_type == RestaurantSource.GOOGLE_MAPS:
        fields.pop("manual_address", None)
        fields["is_cloud_kitchen"] = False
    else:
        for key in ("place_id", "google_maps_address", "latitude", "longitude"):
            fields.pop(key, None)

    restaurant = Restaurant(source_type=source_type, city=city, **fields)
    db.add(restaurant)
    try:
        await db.commit()
    except IntegrityError:
        # Another request created the same place first
        await db.rollback()
        existing = await find_existing(db, source_type, city, place_id=fields.get("place_id"))
        if existing is None:
            raise
        return existing, False

    await db.refresh(restaurant)
    logger.info(f"Created {source_type.value} restaurant {restaurant.id} '{restaurant.name}' in {city}")
    return restaurant, True
