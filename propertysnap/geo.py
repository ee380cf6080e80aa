"""
Location utilities for GPS verification.

Distances are great-circle (Haversine) over a spherical Earth, in meters.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from propertysnap.config import PROXIMITY_THRESHOLD_METERS


EARTH_RADIUS_METERS = 6371000


@dataclass(frozen=True)
class ProximityResult:
    """
    Relationship between a photo's capture location and a property.

    Attributes:
        near: True if the photo was taken within the threshold.
        distance_meters: Rounded distance, or None if a coordinate is missing.
        message: Human-readable summary.
    """

    near: bool
    distance_meters: Optional[int]
    message: str


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the distance between two GPS coordinates using the Haversine formula.

    Returns:
        Distance in meters (exactly 0.0 for identical points).
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_distance(meters: float) -> str:
    """
    Format distance for display.

    Example:
        >>> format_distance(50)
        '50m'
        >>> format_distance(1250)
        '1.3km'
    """
    if meters < 1000:
        return f"{_round_half_up(meters)}m"
    km = Decimal(repr(meters / 1000)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{km}km"


def is_within_threshold(
    current_lat: float,
    current_lon: float,
    target_lat: float,
    target_lon: float,
    threshold_meters: float = 100,
) -> bool:
    """Check if a location is within threshold_meters of a target location."""
    distance = calculate_distance(current_lat, current_lon, target_lat, target_lon)
    return distance <= threshold_meters


def check_proximity(
    photo_lat: Optional[float],
    photo_lon: Optional[float],
    property_lat: Optional[float],
    property_lon: Optional[float],
    max_distance_meters: float = PROXIMITY_THRESHOLD_METERS,
) -> ProximityResult:
    """
    Check if a photo was taken near the property location.

    A missing coordinate (None) on either side means proximity cannot be
    established, so the result is never "near".
    """
    if photo_lat is None or photo_lon is None:
        return ProximityResult(near=False, distance_meters=None, message="Photo location not available")

    if property_lat is None or property_lon is None:
        return ProximityResult(near=False, distance_meters=None, message="Property location not set")

    distance = calculate_distance(photo_lat, photo_lon, property_lat, property_lon)
    near = distance <= max_distance_meters
    rounded = _round_half_up(distance)

    if near:
        message = f"Photo taken {rounded}m from property"
    else:
        message = f"Warning: Photo taken {rounded}m from property"

    return ProximityResult(near=near, distance_meters=rounded, message=message)
