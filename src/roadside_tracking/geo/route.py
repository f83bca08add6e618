"""Synthetic route generation for simulated provider movement.

Positions here use an equirectangular approximation (111 km per degree
of latitude) and straight-line interpolation on latitude and longitude
independently. This is accurate enough at city scale and is what the
movement simulation expects; it is not geodesic.
"""

import math
import random
from dataclasses import dataclass

from roadside_tracking.models import Coordinate

KM_PER_DEGREE = 111.0
WAYPOINT_JITTER_DEGREES = 0.002


@dataclass(frozen=True)
class SyntheticRoute:
    start: Coordinate
    destination: Coordinate
    waypoints: tuple[Coordinate, ...]

    def display_path(self) -> tuple[Coordinate, ...]:
        """Start, interior waypoints and destination in travel order."""
        return (self.start, *self.waypoints, self.destination)


def _wrap_longitude(lng: float) -> float:
    if -180.0 <= lng <= 180.0:
        return lng
    return ((lng + 180.0) % 360.0) - 180.0


def _clamp_latitude(lat: float) -> float:
    return max(-90.0, min(90.0, lat))


def offset_coordinate(origin: Coordinate, distance_km: float, bearing_rad: float) -> Coordinate:
    """Move ``distance_km`` from ``origin`` along ``bearing_rad`` (0 = north)."""
    lat_offset = (distance_km / KM_PER_DEGREE) * math.cos(bearing_rad)
    cos_lat = math.cos(math.radians(origin.latitude))
    # At the poles a longitude offset is meaningless
    lng_offset = (
        (distance_km / (KM_PER_DEGREE * cos_lat)) * math.sin(bearing_rad)
        if abs(cos_lat) > 1e-12
        else 0.0
    )
    return Coordinate(
        latitude=_clamp_latitude(origin.latitude + lat_offset),
        longitude=_wrap_longitude(origin.longitude + lng_offset),
    )


def _longitude_delta(start: float, end: float) -> float:
    """Signed longitude difference in [-180, 180), crossing the antimeridian if shorter."""
    return ((end - start + 180.0) % 360.0) - 180.0


def interpolate(start: Coordinate, end: Coordinate, fraction: float) -> Coordinate:
    """Linear interpolation on latitude and longitude independently.

    Longitude follows the shorter way round, so a route that crosses the
    antimeridian does not circle the globe.
    """
    lng_delta = _longitude_delta(start.longitude, end.longitude)
    return Coordinate(
        latitude=start.latitude + (end.latitude - start.latitude) * fraction,
        longitude=_wrap_longitude(start.longitude + lng_delta * fraction),
    )


def plan_synthetic_route(
    destination: Coordinate,
    rng: random.Random,
    min_distance_km: float = 1.5,
    max_distance_km: float = 3.0,
    min_waypoints: int = 2,
    max_waypoints: int = 4,
) -> SyntheticRoute:
    """Pick a believable starting point near ``destination`` and a route to it.

    The start lies ``min_distance_km``-``max_distance_km`` away at a uniformly
    random bearing. Interior waypoints are evenly spaced along the straight
    line and jittered by up to half of WAYPOINT_JITTER_DEGREES on each axis;
    they are for display only.
    """
    bearing_rad = rng.uniform(0.0, 2 * math.pi)
    start_distance = rng.uniform(min_distance_km, max_distance_km)
    start = offset_coordinate(destination, start_distance, bearing_rad)

    count = rng.randint(min_waypoints, max_waypoints)
    waypoints = []
    for i in range(count):
        base = interpolate(start, destination, (i + 1) / (count + 1))
        lat_jitter = WAYPOINT_JITTER_DEGREES * (rng.random() - 0.5)
        lng_jitter = WAYPOINT_JITTER_DEGREES * (rng.random() - 0.5)
        waypoints.append(
            Coordinate(
                latitude=_clamp_latitude(base.latitude + lat_jitter),
                longitude=_wrap_longitude(base.longitude + lng_jitter),
            )
        )

    return SyntheticRoute(start=start, destination=destination, waypoints=tuple(waypoints))
