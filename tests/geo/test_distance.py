import pytest

from geo.distance import haversine_distance_km, haversine_distance_m, is_within_radius_km
from tests.factories import LOPEZ_CENTER

LAT, LON = LOPEZ_CENTER


@pytest.mark.unit
class TestHaversine:
    def test_same_point(self):
        assert haversine_distance_m(LAT, LON, LAT, LON) == 0.0

    def test_one_hundredth_degree_of_latitude(self):
        assert haversine_distance_km(LAT, LON, LAT + 0.01, LON) == pytest.approx(1.112, abs=0.002)

    def test_symmetric(self):
        there = haversine_distance_m(LAT, LON, 13.95, 122.30)
        back = haversine_distance_m(13.95, 122.30, LAT, LON)
        assert there == pytest.approx(back)


@pytest.mark.unit
class TestWithinRadius:
    def test_inside_and_outside(self):
        assert is_within_radius_km(LAT, LON, LAT + 0.004, LON, 0.5)
        assert not is_within_radius_km(LAT, LON, LAT + 0.006, LON, 0.5)

    def test_longitude_offsets_scale_with_latitude(self):
        # 0.0045 degrees of longitude is ~486 m at Lopez latitude
        assert is_within_radius_km(LAT, LON, LAT, LON + 0.0045, 0.5)
        assert not is_within_radius_km(LAT, LON, LAT, LON + 0.0047, 0.5)

    def test_zero_radius(self):
        assert is_within_radius_km(LAT, LON, LAT, LON, 0.0)
