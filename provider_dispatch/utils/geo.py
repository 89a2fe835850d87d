"""Distance and travel-time helpers for offers."""

import math

EARTH_RADIUS_KM = 6371.0

# Average local travel speed used for ETA estimates
AVERAGE_SPEED_KMH = 30.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(distance_km: float) -> str:
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m"
    return f"{distance_km:.1f}km"


def eta_minutes(distance_km: float, speed_kmh: float = AVERAGE_SPEED_KMH) -> int:
    """Estimated travel time in whole minutes, rounded up."""
    return math.ceil(distance_km * 60 / speed_kmh)
