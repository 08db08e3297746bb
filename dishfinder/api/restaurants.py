"""
Restaurant API endpoints
"""
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.database import get_db
from dishfinder.models.user import User
from dishfinder.models.restaurant import Restaurant, RestaurantSource
from dishfinder.api.auth import get_current_user
from dishfinder.services.restaurants import find_or_create_restaurant

router = APIRouter()


class GoogleMapsData(BaseModel):
    place_id: str
    name: str
    formatted_address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class ManualData(BaseModel):
    name: str
    address: Optional[str] = None
    is_cloud_kitchen: bool = False


class RestaurantCreate(BaseModel):
    type: RestaurantSource
    city: str
    google_maps_data: Optional[GoogleMapsData] = None
    manual_data: Optional[ManualData] = None

    @model_validator(mode="after")
    def check_source_data(self):
        if not self.city.strip():
            raise ValueError("City is required")
        if self.type == RestaurantSource.GOOGLE_MAPS and self.google_maps_data is None:
            raise ValueError("google_maps_data is required for google_maps restaurants")
        if self.type == RestaurantSource.MANUAL and (self.manual_data is None or not self.manual_data.name.strip()):
            raise ValueError("manual_data with a name is required for manual restaurants")
        return self


class RestaurantResponse(BaseModel):
    id: int
    name: str
    city: str
    source_type: RestaurantSource
    place_id: Optional[str]
    google_maps_address: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    manual_address: Optional[str]
    is_cloud_kitchen: bool
    verified: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class FindOrCreateResponse(BaseModel):
    restaurant: RestaurantResponse
    created: bool


@router.post("/", response_model=FindOrCreateResponse)
async def find_or_create(
    data: RestaurantCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Return the matching restaurant, creating it on first reference"""
    city = data.city.strip()
    if data.type == RestaurantSource.GOOGLE_MAPS:
        g = data.google_maps_data
        restaurant, created = await find_or_create_restaurant(
            db, data.type, city,
            name=g.name.strip(),
            place_id=g.place_id,
            google_maps_address=g.formatted_address,
            latitude=g.lat,
            longitude=g.lng,
        )
    else:
        m = data.manual_data
        restaurant, created = await find_or_create_restaurant(
            db, data.type, city,
            name=m.name.strip(),
            manual_address=m.address,
            is_cloud_kitchen=m.is_cloud_kitchen,
        )
    return FindOrCreateResponse(restaurant=RestaurantResponse.model_validate(restaurant), created=created)


@router.get("/", response_model=List[RestaurantResponse])
async def list_restaurants(
    city: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    query = select(Restaurant).order_by(Restaurant.created_at.desc(), Restaurant.id.desc())
    if city:
        query = query.where(Restaurant.city == city)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{restaurant_id}", response_model=RestaurantResponse)
async def get_restaurant(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Restaurant).where(Restaurant.id == restaurant_id))
    restaurant = result.scalar_one_or_none()
    if not restaurant:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return restaurant
