"""
Dish model and its availability tree (channels -> delivery apps)
"""
from sqlalchemy import (
    Column, Integer, String, Text, Float, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from dishfinder.database import Base
from enum import Enum


class ProteinSource(str, Enum):
    CHICKEN = "Chicken"
    FISH = "Fish"
    PANEER = "Paneer"
    TOFU = "Tofu"
    EGGS = "Eggs"
    MUTTON = "Mutton"
    BEEF = "Beef"
    OTHER = "Other"


class TasteRating(str, Enum):
    GOOD = "Good"
    OKAY = "Okay"


class ProteinContent(str, Enum):
    HIGH = "High"
    MODERATE = "Moderate"


class SatisfactionRating(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ChannelType(str, Enum):
    IN_STORE = "In-Store"
    ONLINE = "Online"


class Dish(Base):
    __tablename__ = "dishes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)

    dish_name = Column(String, nullable=False)
    price = Column(Float, nullable=False)

    # Ratings
    protein_source = Column(SQLEnum(ProteinSource, native_enum=False), nullable=False)
    taste = Column(SQLEnum(TasteRating, native_enum=False), nullable=True)
    protein_content = Column(SQLEnum(ProteinContent, native_enum=False), nullable=True)
    satisfaction = Column(SQLEnum(SatisfactionRating, native_enum=False), nullable=True)

    comment = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)

    # Pre-channel rows carried a single availability value; only the read model looks at it
    legacy_availability = Column(SQLEnum(ChannelType, native_enum=False), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    restaurant = relationship("Restaurant", lazy="joined")
    user = relationship("User", lazy="joined")
    channels = relationship(
        "DishAvailabilityChannel",
        back_populates="dish",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload",
    )


class DishAvailabilityChannel(Base):
    """How a dish can be had: walk-in (In-Store) or through delivery apps (Online)"""
    __tablename__ = "dish_availability_channels"
    __table_args__ = (
        UniqueConstraint("dish_id", "channel", name="uq_dish_channel"),
    )

    id = Column(Integer, primary_key=True, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id", ondelete="CASCADE"), nullable=False, index=True)
    channel = Column(SQLEnum(ChannelType, native_enum=False), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    dish = relationship("Dish", back_populates="channels", lazy="noload")


class DishDeliveryApp(Base):
    """A delivery platform listed under a dish's Online channel"""
    __tablename__ = "dish_delivery_apps"
    __table_args__ = (
        UniqueConstraint("availability_channel_id", "delivery_app", name="uq_channel_delivery_app"),
    )

    id = Column(Integer, primary_key=True, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id", ondelete="CASCADE"), nullable=False, index=True)
    availability_channel_id = Column(
        Integer, ForeignKey("dish_availability_channels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    delivery_app = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
