"""
User feedback
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.database import get_db
from dishfinder.models.user import User
from dishfinder.models.wishlist import Feedback
from dishfinder.api.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()

FEEDBACK_TYPES = {"general", "bug", "feature", "other"}


class FeedbackCreate(BaseModel):
    message: str
    type: Optional[str] = "general"


@router.post("/")
async def submit_feedback(
    data: FeedbackCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    message = data.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Feedback message is required.")
    feedback_type = data.type if data.type in FEEDBACK_TYPES else "general"

    db.add(Feedback(user_id=current_user.id, message=message, type=feedback_type))
    await db.commit()
    logger.info(f"Feedback ({feedback_type}) from user {current_user.id}")

    return {"message": "Thank you for your feedback! We'll review it soon."}
