"""
Dish API endpoints
"""
import logging
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.config import get_settings
from dishfinder.database import get_db
from dishfinder.models.user import User
from dishfinder.models.restaurant import Restaurant, RestaurantSource
from dishfinder.models.dish import (
    Dish, ProteinSource, TasteRating, ProteinContent, SatisfactionRating
)
from dishfinder.api.auth import get_current_user
from dishfinder.services.availability import classify
from dishfinder.services.dishes import (
    AvailabilityConflict, check_availability_choice, delete_dish_rows,
    serialize_dishes, sync_availability,
)
from dishfinder.services.storage import BlobStorageClient, StorageError, get_storage
from dishfinder.utils.validators import validate_price

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter()

SORT_OPTIONS = {"newest", "price_low", "price_high", "distance"}


# --- Pydantic Schemas ---

class AvailabilityResponse(BaseModel):
    has_in_store: bool
    has_online: bool
    delivery_apps: List[str]
    label: str


class RestaurantSummary(BaseModel):
    id: int
    name: str
    city: str
    source_type: RestaurantSource
    place_id: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    is_cloud_kitchen: bool


class DishResponse(BaseModel):
    id: int
    user_id: int
    author_name: str
    restaurant: RestaurantSummary
    dish_name: str
    price: float
    protein_source: ProteinSource
    taste: Optional[TasteRating]
    protein_content: Optional[ProteinContent]
    satisfaction: Optional[SatisfactionRating]
    comment: Optional[str]
    image_url: Optional[str]
    availability: AvailabilityResponse
    distance_km: Optional[float] = None
    created_at: Optional[datetime]


def _clean_apps(v):
    if v is None:
        return v
    return list(dict.fromkeys(a.strip() for a in v if a and a.strip()))


class DishCreate(BaseModel):
    restaurant_id: int
    dish_name: str
    price: float
    protein_source: ProteinSource
    taste: Optional[TasteRating] = None
    protein_content: Optional[ProteinContent] = None
    satisfaction: Optional[SatisfactionRating] = None
    comment: Optional[str] = None
    image_url: Optional[str] = None
    has_in_store: bool = False
    delivery_apps: List[str] = []

    @field_validator("dish_name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Dish name is required")
        return v.strip()

    @field_validator("price")
    @classmethod
    def price_positive(cls, v):
        return validate_price(v)

    @field_validator("delivery_apps")
    @classmethod
    def clean_apps(cls, v):
        return _clean_apps(v)


class DishUpdate(BaseModel):
    dish_name: Optional[str] = None
    price: Optional[float] = None
    protein_source: Optional[ProteinSource] = None
    taste: Optional[TasteRating] = None
    protein_content: Optional[ProteinContent] = None
    satisfaction: Optional[SatisfactionRating] = None
    comment: Optional[str] = None
    image_url: Optional[str] = None
    has_in_store: Optional[bool] = None
    delivery_apps: Optional[List[str]] = None

    @field_validator("price")
    @classmethod
    def price_positive(cls, v):
        return v if v is None else validate_price(v)

    @field_validator("delivery_apps")
    @classmethod
    def clean_apps(cls, v):
        return _clean_apps(v)


# --- Helpers ---

async def _load_dish(db: AsyncSession, dish_id: int) -> Optional[Dish]:
    result = await db.execute(
        select(Dish).where(Dish.id == dish_id).execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def _owned_dish(db: AsyncSession, dish_id: int, user: User) -> Dish:
    dish = await _load_dish(db, dish_id)
    if not dish:
        raise HTTPException(status_code=404, detail="Dish not found")
    if dish.user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only modify your own dishes.")
    return dish


async def _dish_response(db: AsyncSession, dish_id: int) -> dict:
    dish = await _load_dish(db, dish_id)
    return (await serialize_dishes(db, [dish]))[0]


async def _cleanup_image(storage: BlobStorageClient, image_url: str) -> None:
    """Best effort; a leftover object is not worth failing a delete over"""
    if not await storage.delete(image_url):
        logger.warning(f"Image cleanup skipped or failed for {image_url}")


# --- Endpoints ---

@router.get("/", response_model=List[DishResponse])
async def list_dishes(
    city: Optional[str] = None,
    protein_source: Optional[ProteinSource] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0),
    sort_by: str = "newest",
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Browse dishes. Distance filtering/sorting needs lat+lng and skips restaurants without coordinates."""
    if sort_by not in SORT_OPTIONS:
        raise HTTPException(status_code=400, detail=f"Invalid sort_by. Must be one of: {', '.join(sorted(SORT_OPTIONS))}")
    has_origin = lat is not None and lng is not None
    if (radius_km is not None or sort_by == "distance") and not has_origin:
        raise HTTPException(status_code=400, detail="lat and lng are required for distance filtering")

    query = select(Dish).join(Restaurant, Dish.restaurant_id == Restaurant.id)
    if city:
        query = query.where(Restaurant.city == city)
    if protein_source:
        query = query.where(Dish.protein_source == protein_source)
    if min_price is not None:
        query = query.where(Dish.price >= min_price)
    if max_price is not None:
        query = query.where(Dish.price <= max_price)

    if sort_by == "price_low":
        query = query.order_by(Dish.price.asc(), Dish.id.desc())
    elif sort_by == "price_high":
        query = query.order_by(Dish.price.desc(), Dish.id.desc())
    else:
        query = query.order_by(Dish.created_at.desc(), Dish.id.desc())

    # Distance is computed in Python, so page after filtering on it
    if radius_km is None and sort_by != "distance":
        query = query.offset(offset).limit(limit)

    result = await db.execute(query)
    dishes = result.unique().scalars().all()
    items = await serialize_dishes(db, dishes, lat, lng)

    if radius_km is not None:
        items = [d for d in items if d["distance_km"] is not None and d["distance_km"] <= radius_km]
    if sort_by == "distance":
        items.sort(key=lambda d: (d["distance_km"] is None, d["distance_km"] or 0.0))
    if radius_km is not None or sort_by == "distance":
        items = items[offset:offset + limit]
    return items


@router.get("/mine", response_model=List[DishResponse])
async def list_my_dishes(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(
        select(Dish).where(Dish.user_id == current_user.id).order_by(Dish.created_at.desc(), Dish.id.desc())
    )
    return await serialize_dishes(db, result.unique().scalars().all())


@router.get("/{dish_id}", response_model=DishResponse)
async def get_dish(
    dish_id: int,
    db: AsyncSession = Depends(get_db)
):
    dish = await _load_dish(db, dish_id)
    if not dish:
        raise HTTPException(status_code=404, detail="Dish not found")
    return (await serialize_dishes(db, [dish]))[0]


@router.post("/", response_model=DishResponse)
async def create_dish(
    data: DishCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a dish together with its availability channels"""
    result = await db.execute(select(Restaurant).where(Restaurant.id == data.restaurant_id))
    restaurant = result.scalar_one_or_none()
    if not restaurant:
        raise HTTPException(status_code=404, detail="Restaurant not found")

    try:
        check_availability_choice(restaurant, data.has_in_store, data.delivery_apps)
    except AvailabilityConflict as e:
        raise HTTPException(status_code=400, detail=str(e))

    fields = data.model_dump(exclude={"has_in_store", "delivery_apps"})
    dish = Dish(user_id=current_user.id, **fields)
    db.add(dish)
    await db.flush()

    await sync_availability(db, dish.id, data.has_in_store, data.delivery_apps)
    await db.commit()
    logger.info(f"User {current_user.id} added dish {dish.id} at restaurant {restaurant.id}")

    return await _dish_response(db, dish.id)


@router.put("/{dish_id}", response_model=DishResponse)
async def update_dish(
    dish_id: int,
    data: DishUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update a dish; availability is re-synced only when given"""
    dish = await _owned_dish(db, dish_id, current_user)
    updates = data.model_dump(exclude_unset=True, exclude={"has_in_store", "delivery_apps"})
    if "dish_name" in updates:
        if not (updates["dish_name"] or "").strip():
            raise HTTPException(status_code=400, detail="Dish name is required")
        updates["dish_name"] = updates["dish_name"].strip()
    for required in ("price", "protein_source"):
        if required in updates and updates[required] is None:
            raise HTTPException(status_code=400, detail=f"{required} cannot be empty")

    if data.has_in_store is not None or data.delivery_apps is not None:
        current = await classify(db, dish.id)
        has_in_store = current.has_in_store if data.has_in_store is None else data.has_in_store
        delivery_apps = current.delivery_apps if data.delivery_apps is None else data.delivery_apps
        try:
            check_availability_choice(dish.restaurant, has_in_store, delivery_apps)
        except AvailabilityConflict as e:
            raise HTTPException(status_code=400, detail=str(e))
        await sync_availability(db, dish.id, has_in_store, delivery_apps)

    for key, value in updates.items():
        setattr(dish, key, value)

    await db.commit()
    return await _dish_response(db, dish.id)


@router.delete("/{dish_id}")
async def delete_dish(
    dish_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: BlobStorageClient = Depends(get_storage),
):
    """Delete a dish; its photo is removed from storage after the response"""
    dish = await _owned_dish(db, dish_id, current_user)
    image_url = dish.image_url

    await delete_dish_rows(db, dish.id)
    await db.commit()
    logger.info(f"User {current_user.id} deleted dish {dish_id}")

    if image_url:
        background_tasks.add_task(_cleanup_image, storage, image_url)
    return {"message": "Dish deleted"}


@router.post("/{dish_id}/image", response_model=DishResponse)
async def upload_dish_image(
    dish_id: int,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: BlobStorageClient = Depends(get_storage),
):
    """Upload (or replace) the dish photo"""
    dish = await _owned_dish(db, dish_id, current_user)

    content = await file.read()
    max_bytes = settings.MAX_IMAGE_SIZE_MB * 1024 * 1024
    if len(content) > max_bytes:
        raise HTTPException(413, f"File too large. Maximum size: {settings.MAX_IMAGE_SIZE_MB}MB")

    try:
        url = await storage.upload(current_user.id, content, file.content_type or "")
    except StorageError as e:
        raise HTTPException(400 if "Unsupported" in str(e) else 502, str(e))

    old_url = dish.image_url
    dish.image_url = url
    await db.commit()

    if old_url:
        background_tasks.add_task(_cleanup_image, storage, old_url)
    return await _dish_response(db, dish.id)
