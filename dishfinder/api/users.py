"""
Profile completion and invite codes
"""
import logging
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.config import get_settings
from dishfinder.database import get_db
from dishfinder.models.user import User, InviteCode
from dishfinder.api.auth import get_current_user, UserResponse
from dishfinder.services.invites import InviteError, consume_invite_code, mint_invite_codes
from dishfinder.utils.validators import validate_non_blank

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter()


class ProfileCreate(BaseModel):
    name: str
    city: str
    invite_code: str
    profile_picture_url: Optional[str] = None

    @field_validator("name", "city", "invite_code")
    @classmethod
    def not_blank(cls, v, info):
        return validate_non_blank(v, info.field_name)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    city: Optional[str] = None
    profile_picture_url: Optional[str] = None


class InviteCodeResponse(BaseModel):
    code: str
    is_used: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProfileResponse(UserResponse):
    invite_codes: List[str] = []


@router.post("/profile", response_model=ProfileResponse)
async def complete_profile(
    data: ProfileCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Finish signup: set name/city, consume the invite, mint codes to share"""
    if current_user.has_profile:
        raise HTTPException(status_code=400, detail="Profile already completed.")

    try:
        await consume_invite_code(db, data.invite_code, current_user.id)
    except InviteError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    current_user.name = data.name
    current_user.city = data.city
    if data.profile_picture_url:
        current_user.profile_picture_url = data.profile_picture_url

    codes = await mint_invite_codes(db, current_user.id, settings.INVITE_CODES_PER_SIGNUP)
    await db.commit()
    await db.refresh(current_user)
    logger.info(f"User {current_user.id} completed profile in {current_user.city}")

    response = ProfileResponse.model_validate(current_user)
    response.invite_codes = [c.code for c in codes]
    return response


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    updates = data.model_dump(exclude_none=True)
    for key in ("name", "city"):
        if key in updates:
            try:
                updates[key] = validate_non_blank(updates[key], key)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

    for key, value in updates.items():
        setattr(current_user, key, value)

    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.get("/invite-codes", response_model=List[InviteCodeResponse])
async def list_invite_codes(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(
        select(InviteCode)
        .where(InviteCode.owner_user_id == current_user.id)
        .order_by(InviteCode.created_at, InviteCode.id)
    )
    return result.scalars().all()
