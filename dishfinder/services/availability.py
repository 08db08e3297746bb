"""
Availability read model.

Every read path derives a dish's availability here, from the current channel
and delivery-app rows. Nothing is cached or stored, so a retraction is
visible on the very next read.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.models.dish import Dish, DishAvailabilityChannel, DishDeliveryApp, ChannelType


class AvailabilityLabel(str, Enum):
    IN_STORE = "In-Store"
    ONLINE = "Online"
    BOTH = "Both"
    UNKNOWN = "Unknown"


@dataclass
class Availability:
    has_in_store: bool = False
    has_online: bool = False
    delivery_apps: List[str] = field(default_factory=list)
    label: AvailabilityLabel = AvailabilityLabel.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "has_in_store": self.has_in_store,
            "has_online": self.has_online,
            "delivery_apps": list(self.delivery_apps),
            "label": self.label.value,
        }


def derive_label(
    has_in_store: bool, has_online: bool, legacy: Optional[ChannelType] = None
) -> AvailabilityLabel:
    if has_in_store and has_online:
        return AvailabilityLabel.BOTH
    if has_in_store:
        return AvailabilityLabel.IN_STORE
    if has_online:
        return AvailabilityLabel.ONLINE
    # Rows written before channels existed only carry the single legacy value
    if legacy is not None:
        return AvailabilityLabel(ChannelType(legacy).value)
    return AvailabilityLabel.UNKNOWN


async def classify_many(session: AsyncSession, dish_ids: Iterable[int]) -> Dict[int, Availability]:
    """Availability for each existing dish id, in three queries regardless of batch size."""
    ids = list(dict.fromkeys(dish_ids))
    if not ids:
        return {}

    legacy_rows = await session.execute(
        select(Dish.id, Dish.legacy_availability).where(Dish.id.in_(ids))
    )
    legacy = {dish_id: value for dish_id, value in legacy_rows.all()}

    channel_rows = await session.execute(
        select(DishAvailabilityChannel.dish_id, DishAvailabilityChannel.channel).where(
            DishAvailabilityChannel.dish_id.in_(ids)
        )
    )
    in_store: set = set()
    online: set = set()
    for dish_id, channel in channel_rows.all():
        if channel == ChannelType.IN_STORE:
            in_store.add(dish_id)
        elif channel == ChannelType.ONLINE:
            online.add(dish_id)

    app_rows = await session.execute(
        select(DishAvailabilityChannel.dish_id, DishDeliveryApp.delivery_app)
        .join(DishDeliveryApp, DishDeliveryApp.availability_channel_id == DishAvailabilityChannel.id)
        .where(
            DishAvailabilityChannel.dish_id.in_(ids),
            DishAvailabilityChannel.channel == ChannelType.ONLINE,
        )
    )
    apps: Dict[int, List[str]] = {}
    for dish_id, app in app_rows.all():
        apps.setdefault(dish_id, []).append(app)

    classified = {}
    for dish_id in ids:
        if dish_id not in legacy:
            continue
        has_in_store = dish_id in in_store
        has_online = dish_id in online
        classified[dish_id] = Availability(
            has_in_store=has_in_store,
            has_online=has_online,
            delivery_apps=sorted(apps.get(dish_id, [])),
            label=derive_label(has_in_store, has_online, legacy[dish_id]),
        )
    return classified


async def classify(session: AsyncSession, dish_id: int) -> Optional[Availability]:
    """Availability of one dish, or None if the dish does not exist"""
    return (await classify_many(session, [dish_id])).get(dish_id)
