"""
Delivery-app availability reports (community moderation)
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import async_sessionmaker

from dishfinder.database import get_session_factory
from dishfinder.models.user import User
from dishfinder.api.auth import get_current_user
from dishfinder.services.errors import ModerationError
from dishfinder.services.moderation import ModerationService

logger = logging.getLogger(__name__)

router = APIRouter()


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    restaurant_id: Optional[int] = Field(None, alias="restaurantId")
    delivery_apps: Optional[List[str]] = Field(None, alias="deliveryApps")


@router.post("/delivery-apps")
async def report_delivery_apps(
    data: ReportRequest,
    current_user: User = Depends(get_current_user),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Report that a restaurant is no longer on some delivery apps.

    Each app is removed from the restaurant's dishes once enough distinct
    users have reported it.
    """
    service = ModerationService(session_factory)
    try:
        result = await service.report_apps(data.restaurant_id, data.delivery_apps, current_user.id)
    except ModerationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if result.failed_apps:
        logger.warning(
            f"Reports by user {current_user.id} at restaurant {result.restaurant_id} "
            f"failed for: {', '.join(result.failed_apps)}"
        )

    response = {
        "message": "Reports submitted successfully.",
        "reportedApps": result.reported_apps,
    }
    if result.removed_apps:
        response["removedApps"] = result.removed_apps
    return response
