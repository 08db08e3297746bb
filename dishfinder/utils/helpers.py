"""
General helper utilities
"""
import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres"""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def distance_to(
    lat: Optional[float], lng: Optional[float], target_lat: Optional[float], target_lng: Optional[float]
) -> Optional[float]:
    """Distance in km rounded to 0.1, or None when either point is unknown"""
    if None in (lat, lng, target_lat, target_lng):
        return None
    return round(haversine_km(lat, lng, target_lat, target_lng), 1)
