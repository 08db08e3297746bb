"""
City listing and per-city delivery apps
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.database import get_db
from dishfinder.models.restaurant import Restaurant
from dishfinder.models.dish import Dish
from dishfinder.services.delivery_apps import get_delivery_apps_for_city

router = APIRouter()


class CityDishCount(BaseModel):
    city: str
    dish_count: int


class CityDeliveryApps(BaseModel):
    country: Optional[str]
    available_apps: List[str]
    has_apps: bool


@router.get("/with-dishes", response_model=List[CityDishCount])
async def cities_with_dishes(db: AsyncSession = Depends(get_db)):
    """Cities that have at least one dish, busiest first"""
    dish_count = func.count(Dish.id).label("dish_count")
    result = await db.execute(
        select(Restaurant.city, dish_count)
        .join(Dish, Dish.restaurant_id == Restaurant.id)
        .group_by(Restaurant.city)
        .order_by(dish_count.desc(), Restaurant.city)
    )
    return [CityDishCount(city=row.city, dish_count=row.dish_count) for row in result.all()]


@router.get("/delivery-apps", response_model=CityDeliveryApps)
async def delivery_apps_for_city(city: str = Query(..., min_length=1)):
    return get_delivery_apps_for_city(city)
