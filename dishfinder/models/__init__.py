from dishfinder.models.user import User, InviteCode
from dishfinder.models.restaurant import Restaurant, RestaurantSource
from dishfinder.models.dish import (
    Dish, DishAvailabilityChannel, DishDeliveryApp,
    ChannelType, ProteinSource, TasteRating, ProteinContent, SatisfactionRating,
)
from dishfinder.models.report import DeliveryAppReport
from dishfinder.models.wishlist import WishlistItem, Feedback

__all__ = [
    "User",
    "InviteCode",
    "Restaurant",
    "RestaurantSource",
    "Dish",
    "DishAvailabilityChannel",
    "DishDeliveryApp",
    "ChannelType",
    "ProteinSource",
    "TasteRating",
    "ProteinContent",
    "SatisfactionRating",
    "DeliveryAppReport",
    "WishlistItem",
    "Feedback",
]
