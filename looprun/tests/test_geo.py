import math

import pytest

from looprun.Coordinate import Coordinate
from looprun.errors import InvalidCoordinate
from looprun.geo import (bearing_deg, cum_array, distance_miles, haversine_m,
                         offset_north_m, segment_lengths_m)

POINTS = [
    Coordinate(40.7128, -74.006),
    Coordinate(51.2562, 7.1508),
    Coordinate(-33.8688, 151.2093),
    Coordinate(0.0, 0.0),
    Coordinate(89.9, 179.9),
]


def test_distance_symmetric_and_zero():
    for a in POINTS:
        assert distance_miles(a, a) == 0.0
        for b in POINTS:
            assert distance_miles(a, b) == distance_miles(b, a)


def test_one_degree_of_latitude():
    d = distance_miles((0.0, 0.0), (1.0, 0.0))
    assert d == pytest.approx(69.09, abs=0.01)


def test_near_zero_distance_is_finite_and_non_negative():
    a = (40.7128, -74.006)
    b = (40.7128 + 1e-9, -74.006 + 1e-9)
    d = haversine_m(a, b)
    assert math.isfinite(d)
    assert 0.0 <= d < 0.001


def test_triangle_inequality():
    a, b, c = POINTS[0], POINTS[1], POINTS[3]
    assert distance_miles(a, c) <= distance_miles(a, b) + distance_miles(b, c) + 1e-9


def test_offset_north_is_exact():
    p = offset_north_m((40.0, -74.0), 402.335)
    assert haversine_m((40.0, -74.0), p) == pytest.approx(402.335, abs=1e-6)


def test_bearing():
    assert bearing_deg((0.0, 0.0), (1.0, 0.0)) == pytest.approx(0.0, abs=1e-9)
    assert bearing_deg((0.0, 0.0), (0.0, 1.0)) == pytest.approx(90.0)
    assert bearing_deg((0.0, 0.0), (-1.0, 0.0)) == pytest.approx(180.0)
    assert bearing_deg((0.0, 0.0), (0.0, -1.0)) == pytest.approx(270.0)


def test_segment_lengths_and_cum_array():
    pts = [(0.0, 0.0), (0.0, 0.01), (0.01, 0.01)]
    assert segment_lengths_m(pts) == [haversine_m(pts[0], pts[1]), haversine_m(pts[1], pts[2])]
    assert segment_lengths_m(pts[:1]) == []
    assert cum_array([1.0, 2.0, 3.0]) == [0.0, 1.0, 3.0, 6.0]


@pytest.mark.parametrize("lat,lon", [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (0.0, -181.0),
                                     (float("nan"), 0.0), (0.0, float("inf"))])
def test_coordinate_rejects_out_of_range(lat, lon):
    with pytest.raises(InvalidCoordinate):
        Coordinate(lat, lon)


def test_coordinate_orders():
    c = Coordinate.from_latlon((51.2, 7.1))
    assert c.as_latlon() == (51.2, 7.1)
    assert c.as_lonlat() == (7.1, 51.2)
