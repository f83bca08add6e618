"""Centralized geographic distance and bearing calculations.

Haversine great-circle distance and initial compass bearing between
coordinates. Used for provider-to-customer distance, ETA and heading
during tracking.

Known limitation: bearings are not continuous under small perturbations
near the poles. Degenerate input (identical points) yields a bearing of 0.
"""

from math import atan2, cos, degrees, radians, sin, sqrt

from roadside_tracking.models import Coordinate

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000


def haversine_distance_m(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance between the two points in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push a marginally above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def haversine_distance_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points in kilometers."""
    return haversine_distance_m(lat1, lon1, lat2, lon2) / 1000.0


def initial_bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial compass bearing from the first point to the second, in [0, 360)."""
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    phi1, phi2 = radians(lat1), radians(lat2)
    dlon = radians(lon2 - lon1)

    y = sin(dlon) * cos(phi2)
    x = cos(phi1) * sin(phi2) - sin(phi1) * cos(phi2) * cos(dlon)

    bearing = (degrees(atan2(y, x)) + 360) % 360
    # (-tiny + 360) % 360 can round to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    return haversine_distance_km(a.latitude, a.longitude, b.latitude, b.longitude)


def bearing_degrees(a: Coordinate, b: Coordinate) -> float:
    """Initial compass bearing from ``a`` to ``b`` normalized to [0, 360)."""
    return initial_bearing_deg(a.latitude, a.longitude, b.latitude, b.longitude)
