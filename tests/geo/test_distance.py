"""Tests for haversine distance and bearing."""

import pytest

from roadside_tracking.geo.distance import (
    EARTH_RADIUS_KM,
    bearing_degrees,
    distance_km,
    haversine_distance_km,
    haversine_distance_m,
    initial_bearing_deg,
)
from roadside_tracking.models import Coordinate


@pytest.mark.unit
class TestHaversineDistance:
    def test_same_point_is_zero(self):
        assert haversine_distance_m(28.6139, 77.2090, 28.6139, 77.2090) == 0.0

    def test_delhi_to_mumbai(self):
        # Roughly 1150 km great-circle
        d = haversine_distance_km(28.6139, 77.2090, 19.0760, 72.8777)
        assert 1140 < d < 1160

    def test_one_degree_latitude(self):
        d = haversine_distance_km(0.0, 0.0, 1.0, 0.0)
        assert d == pytest.approx(EARTH_RADIUS_KM * 3.141592653589793 / 180, rel=1e-9)

    def test_antipodal_points_do_not_fail(self):
        d = haversine_distance_km(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(EARTH_RADIUS_KM * 3.141592653589793, rel=1e-9)

    def test_meters_and_kilometers_agree(self):
        m = haversine_distance_m(19.08, 72.88, 19.0760, 72.8777)
        km = haversine_distance_km(19.08, 72.88, 19.0760, 72.8777)
        assert m == pytest.approx(km * 1000)


@pytest.mark.unit
@pytest.mark.critical
class TestCoordinateDistance:
    @pytest.mark.parametrize(
        "a,b",
        [
            ((28.6139, 77.2090), (28.6300, 77.2200)),
            ((19.0760, 72.8777), (19.0800, 72.8800)),
            ((-33.8688, 151.2093), (51.5074, -0.1278)),
            ((89.9, 10.0), (-89.9, -170.0)),
        ],
    )
    def test_symmetric(self, a, b):
        pa = Coordinate(latitude=a[0], longitude=a[1])
        pb = Coordinate(latitude=b[0], longitude=b[1])
        assert distance_km(pa, pb) == pytest.approx(distance_km(pb, pa), abs=1e-9)

    def test_identity(self, delhi):
        assert distance_km(delhi, delhi) == 0.0

    def test_non_negative(self, delhi, mumbai):
        assert distance_km(delhi, mumbai) >= 0.0


@pytest.mark.unit
class TestBearing:
    def test_due_north(self):
        assert initial_bearing_deg(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.0)

    def test_due_east(self):
        assert initial_bearing_deg(0.0, 0.0, 0.0, 1.0) == pytest.approx(90.0)

    def test_due_south(self):
        assert initial_bearing_deg(1.0, 0.0, 0.0, 0.0) == pytest.approx(180.0)

    def test_due_west(self):
        assert initial_bearing_deg(0.0, 1.0, 0.0, 0.0) == pytest.approx(270.0)

    def test_identical_points_yield_zero(self, delhi):
        assert bearing_degrees(delhi, delhi) == 0.0

    @pytest.mark.parametrize(
        "a,b",
        [
            ((28.6139, 77.2090), (28.6138, 77.2089)),
            ((0.0, 0.0), (-1e-12, 0.0)),
            ((10.0, 10.0), (10.0, 9.9999999)),
            ((-45.0, 170.0), (-44.0, -170.0)),
        ],
    )
    def test_normalized_range(self, a, b):
        bearing = bearing_degrees(
            Coordinate(latitude=a[0], longitude=a[1]), Coordinate(latitude=b[0], longitude=b[1])
        )
        assert 0.0 <= bearing < 360.0
