"""
Availability channel and delivery-app endpoints (dish owners only)
"""
import logging
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.database import get_db
from dishfinder.models.user import User
from dishfinder.models.dish import Dish, DishAvailabilityChannel, DishDeliveryApp, ChannelType
from dishfinder.api.auth import get_current_user
from dishfinder.utils.validators import validate_non_blank

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Pydantic Schemas ---

class ChannelCreate(BaseModel):
    dish_id: int
    channel: ChannelType


class DeliveryAppResponse(BaseModel):
    id: int
    dish_id: int
    availability_channel_id: int
    delivery_app: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ChannelResponse(BaseModel):
    id: int
    dish_id: int
    channel: ChannelType
    delivery_apps: List[DeliveryAppResponse] = []
    created_at: Optional[datetime]


class DeliveryAppCreate(BaseModel):
    availability_channel_id: int
    delivery_app: str

    @field_validator("delivery_app")
    @classmethod
    def app_not_blank(cls, v):
        return validate_non_blank(v, "delivery_app")


# --- Helpers ---

async def _owned_dish(db: AsyncSession, dish_id: int, user: User) -> Dish:
    result = await db.execute(select(Dish).where(Dish.id == dish_id))
    dish = result.unique().scalar_one_or_none()
    if not dish:
        raise HTTPException(status_code=404, detail="Dish not found")
    if dish.user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only modify your own dishes.")
    return dish


async def _owned_channel(db: AsyncSession, channel_id: int, user: User) -> DishAvailabilityChannel:
    result = await db.execute(
        select(DishAvailabilityChannel).where(DishAvailabilityChannel.id == channel_id)
    )
    channel = result.scalar_one_or_none()
    if not channel:
        raise HTTPException(status_code=404, detail="Availability channel not found")
    await _owned_dish(db, channel.dish_id, user)
    return channel


async def _apps_for_channel(db: AsyncSession, channel_id: int) -> List[DishDeliveryApp]:
    result = await db.execute(
        select(DishDeliveryApp)
        .where(DishDeliveryApp.availability_channel_id == channel_id)
        .order_by(DishDeliveryApp.delivery_app)
    )
    return list(result.scalars().all())


def _channel_response(channel: DishAvailabilityChannel, apps: List[DishDeliveryApp]) -> ChannelResponse:
    return ChannelResponse(
        id=channel.id,
        dish_id=channel.dish_id,
        channel=channel.channel,
        delivery_apps=[DeliveryAppResponse.model_validate(a) for a in apps],
        created_at=channel.created_at,
    )


# --- Channels ---

@router.get("/availability-channels", response_model=List[ChannelResponse])
async def list_channels(
    dish_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await _owned_dish(db, dish_id, current_user)
    result = await db.execute(
        select(DishAvailabilityChannel)
        .where(DishAvailabilityChannel.dish_id == dish_id)
        .order_by(DishAvailabilityChannel.id)
    )
    return [
        _channel_response(c, await _apps_for_channel(db, c.id))
        for c in result.scalars().all()
    ]


@router.post("/availability-channels", response_model=ChannelResponse)
async def add_channel(
    data: ChannelCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    dish = await _owned_dish(db, data.dish_id, current_user)
    if data.channel == ChannelType.IN_STORE and dish.restaurant.is_cloud_kitchen:
        raise HTTPException(status_code=400, detail="Cloud kitchens are delivery-only and cannot offer In-Store")

    existing = await db.execute(
        select(DishAvailabilityChannel.id).where(
            DishAvailabilityChannel.dish_id == dish.id,
            DishAvailabilityChannel.channel == data.channel,
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=409, detail=f"Dish already has a {data.channel.value} channel")

    channel = DishAvailabilityChannel(dish_id=dish.id, channel=data.channel)
    db.add(channel)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail=f"Dish already has a {data.channel.value} channel")

    await db.refresh(channel)
    logger.info(f"Added {data.channel.value} channel {channel.id} to dish {dish.id}")
    return _channel_response(channel, [])


@router.delete("/availability-channels/{channel_id}")
async def delete_channel(
    channel_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Remove a channel and every delivery app listed under it"""
    channel = await _owned_channel(db, channel_id, current_user)
    await db.execute(delete(DishDeliveryApp).where(DishDeliveryApp.availability_channel_id == channel.id))
    await db.execute(delete(DishAvailabilityChannel).where(DishAvailabilityChannel.id == channel.id))
    await db.commit()
    return {"message": "Availability channel deleted"}


# --- Delivery apps ---

@router.get("/delivery-apps", response_model=List[DeliveryAppResponse])
async def list_delivery_apps(
    availability_channel_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    channel = await _owned_channel(db, availability_channel_id, current_user)
    return await _apps_for_channel(db, channel.id)


@router.post("/delivery-apps", response_model=DeliveryAppResponse)
async def add_delivery_app(
    data: DeliveryAppCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    channel = await _owned_channel(db, data.availability_channel_id, current_user)
    if ChannelType(channel.channel) != ChannelType.ONLINE:
        raise HTTPException(status_code=400, detail="Delivery apps can only be added to an Online channel")

    existing = await db.execute(
        select(DishDeliveryApp.id).where(
            DishDeliveryApp.availability_channel_id == channel.id,
            DishDeliveryApp.delivery_app == data.delivery_app,
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=409, detail=f"{data.delivery_app} is already listed for this dish")

    app = DishDeliveryApp(
        dish_id=channel.dish_id,
        availability_channel_id=channel.id,
        delivery_app=data.delivery_app,
    )
    db.add(app)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail=f"{data.delivery_app} is already listed for this dish")

    await db.refresh(app)
    return app


@router.delete("/delivery-apps/{app_id}")
async def delete_delivery_app(
    app_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(select(DishDeliveryApp).where(DishDeliveryApp.id == app_id))
    app = result.scalar_one_or_none()
    if not app:
        raise HTTPException(status_code=404, detail="Delivery app not found")
    await _owned_dish(db, app.dish_id, current_user)

    await db.execute(delete(DishDeliveryApp).where(DishDeliveryApp.id == app.id))
    await db.commit()
    return {"message": "Delivery app removed"}
