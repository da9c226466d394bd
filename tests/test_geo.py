import pytest

from routing.geo import EARTH_RADIUS_KM, haversine_km, offset, straight_line, to_degrees, to_radians


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_KM * 3.141592653589793 / 180
    assert haversine_km((0.0, 0.0), (1.0, 0.0)) == pytest.approx(expected, abs=1e-6)


def test_haversine_is_symmetric_and_zero_for_same_point():
    kl = (3.139, 101.6869)
    pj = (3.1073, 101.6067)
    assert haversine_km(kl, kl) == 0.0
    assert haversine_km(kl, pj) == pytest.approx(haversine_km(pj, kl))
    # Kuala Lumpur city centre to Petaling Jaya is under 10 km
    assert 5 < haversine_km(kl, pj) < 10


def test_radians_round_trip():
    assert to_degrees(to_radians(101.6869)) == pytest.approx(101.6869)


def test_offset_stays_inside_valid_range():
    lat, lon = offset((89.99, 179.99), 0.02, 0.02)
    assert lat == 90.0
    assert lon == pytest.approx(-179.99)


def test_offset_regular_shift():
    assert offset((3.139, 101.6869), 0.02, 0.02) == pytest.approx((3.159, 101.7069))


def test_straight_line_is_two_points():
    assert straight_line((1.0, 2.0), (3.0, 4.0)) == [(1.0, 2.0), (3.0, 4.0)]
