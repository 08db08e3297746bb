"""
Wishlist API endpoints
"""
import logging
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.database import get_db
from dishfinder.models.user import User
from dishfinder.models.restaurant import Restaurant
from dishfinder.models.dish import Dish
from dishfinder.models.wishlist import WishlistItem
from dishfinder.api.auth import get_current_user
from dishfinder.api.dishes import DishResponse
from dishfinder.services.dishes import serialize_dishes

logger = logging.getLogger(__name__)

router = APIRouter()


class WishlistAdd(BaseModel):
    dish_id: int


class WishlistDishResponse(DishResponse):
    wishlisted_at: Optional[datetime]


@router.get("/", response_model=List[WishlistDishResponse])
async def get_wishlist(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Wishlisted dishes in the user's current city, most recent first"""
    query = (
        select(Dish, WishlistItem.created_at)
        .join(WishlistItem, WishlistItem.dish_id == Dish.id)
        .join(Restaurant, Dish.restaurant_id == Restaurant.id)
        .where(WishlistItem.user_id == current_user.id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
    )
    if current_user.city:
        query = query.where(Restaurant.city == current_user.city)

    result = await db.execute(query)
    rows = result.unique().all()
    items = await serialize_dishes(db, [dish for dish, _ in rows])
    for item, (_, wishlisted_at) in zip(items, rows):
        item["wishlisted_at"] = wishlisted_at
    return items


@router.post("/")
async def add_to_wishlist(
    data: WishlistAdd,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(select(Dish.id).where(Dish.id == data.dish_id))
    if result.first() is None:
        raise HTTPException(status_code=404, detail="Dish not found.")

    existing = await db.execute(
        select(WishlistItem.id).where(
            WishlistItem.user_id == current_user.id,
            WishlistItem.dish_id == data.dish_id,
        )
    )
    if existing.first() is not None:
        return {"message": "Dish already in wishlist."}

    db.add(WishlistItem(user_id=current_user.id, dish_id=data.dish_id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return {"message": "Dish already in wishlist."}

    return {"message": "Dish added to wishlist successfully."}


@router.delete("/{dish_id}")
async def remove_from_wishlist(
    dish_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await db.execute(
        delete(WishlistItem).where(
            WishlistItem.user_id == current_user.id,
            WishlistItem.dish_id == dish_id,
        )
    )
    await db.commit()
    return {"message": "Dish removed from wishlist successfully."}
