"""
Community moderation of delivery-app availability.

A batch of app reports for one restaurant is processed in two phases:
first every report is written to the ledger, then every app is checked
against the threshold and retracted when it is met. Within each phase the
apps fan out concurrently, each with its own session, so a storage error on
one app never blocks its siblings.

Two reporters racing on the same (restaurant, app) can both read a count of 1
before either insert lands; the retraction then happens on the next report
for that app. This is accepted: the threshold stays met once reached, so any
later report for the app re-runs the cascade.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from dishfinder.models.restaurant import Restaurant
from dishfinder.services.errors import NotFound, StorageFailure, ValidationError
from dishfinder.services.report_ledger import LedgerOutcome, submit_report
from dishfinder.services.retraction import RetractionResult, retract_delivery_app
from dishfinder.services.threshold import meets_threshold
from dishfinder.utils.validators import validate_delivery_apps

logger = logging.getLogger(__name__)


@dataclass
class ModerationResult:
    restaurant_id: int
    reported_apps: List[str] = field(default_factory=list)
    duplicate_apps: List[str] = field(default_factory=list)
    failed_apps: List[str] = field(default_factory=list)
    removed_apps: List[str] = field(default_factory=list)


class ModerationService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def report_apps(
        self, restaurant_id: int, delivery_apps: List[str], user_id: int
    ) -> ModerationResult:
        if not restaurant_id:
            raise ValidationError("Restaurant ID and delivery apps array are required.")
        try:
            apps = validate_delivery_apps(delivery_apps or [])
        except ValueError:
            raise ValidationError("Restaurant ID and delivery apps array are required.")

        await self._ensure_restaurant(restaurant_id)

        outcomes = await asyncio.gather(
            *(self._submit(restaurant_id, app, user_id) for app in apps)
        )
        result = ModerationResult(restaurant_id=restaurant_id)
        for app, outcome in zip(apps, outcomes):
            if outcome is LedgerOutcome.RECORDED:
                result.reported_apps.append(app)
            elif outcome is LedgerOutcome.DUPLICATE:
                result.duplicate_apps.append(app)
            else:
                result.failed_apps.append(app)

        if len(result.failed_apps) == len(apps):
            raise StorageFailure("Failed to record any of the submitted reports.")

        retractions = await asyncio.gather(
            *(self._evaluate_and_retract(restaurant_id, app) for app in apps)
        )
        result.removed_apps = [
            app for app, retraction in zip(apps, retractions)
            if retraction is not None and retraction.removed
        ]
        return result

    async def _ensure_restaurant(self, restaurant_id: int) -> None:
        try:
            async with self.session_factory() as session:
                found = await session.execute(
                    select(Restaurant.id).where(Restaurant.id == restaurant_id)
                )
                exists = found.first() is not None
        except SQLAlchemyError as e:
            logger.error(f"Error looking up restaurant {restaurant_id}: {e}")
            raise StorageFailure("Failed to look up restaurant.")
        if not exists:
            raise NotFound("Restaurant not found.")

    async def _submit(self, restaurant_id: int, app: str, user_id: int) -> LedgerOutcome:
        try:
            async with self.session_factory() as session:
                return await submit_report(session, restaurant_id, app, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Error reporting {app} at restaurant {restaurant_id}: {e}")
            return LedgerOutcome.FAILED

    async def _evaluate_and_retract(self, restaurant_id: int, app: str) -> Optional[RetractionResult]:
        try:
            async with self.session_factory() as session:
                if not await meets_threshold(session, restaurant_id, app):
                    return None
                logger.info(f"Threshold met for {app} at restaurant {restaurant_id}, retracting")
                return await retract_delivery_app(session, restaurant_id, app)
        except SQLAlchemyError as e:
            logger.error(f"Error evaluating reports for {app} at restaurant {restaurant_id}: {e}")
            return None
