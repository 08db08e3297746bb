"""
Restaurant model - shared by every dish that references it
"""
from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
from dishfinder.database import Base
from enum import Enum


class RestaurantSource(str, Enum):
    GOOGLE_MAPS = "google_maps"
    MANUAL = "manual"


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    city = Column(String, nullable=False, index=True)
    source_type = Column(SQLEnum(RestaurantSource, native_enum=False), nullable=False)

    # Google Maps data (google_maps only)
    place_id = Column(String, unique=True, nullable=True)
    google_maps_address = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Manual entry data
    manual_address = Column(String, nullable=True)
    is_cloud_kitchen = Column(Boolean, default=False, nullable=False)  # delivery-only, manual only

    verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
