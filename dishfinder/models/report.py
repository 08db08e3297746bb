"""
Delivery-app availability reports - the append-only moderation ledger
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from dishfinder.database import Base


class DeliveryAppReport(Base):
    """A user's claim that a delivery app no longer serves a restaurant"""
    __tablename__ = "restaurant_delivery_app_reports"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id", "delivery_app", "reported_by_user_id",
            name="uq_report_restaurant_app_user",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    delivery_app = Column(String, nullable=False)
    reported_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
