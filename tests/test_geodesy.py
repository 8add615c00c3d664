import pytest

from trail_matcher.geodesy import distance_km, projected_to_geographic

AUCKLAND = (-36.8485, 174.7633)
WELLINGTON = (-41.2865, 174.7762)


def test_distance_same_point_is_zero():
    assert distance_km(*AUCKLAND, *AUCKLAND) == 0
    assert distance_km(0.0, 0.0, 0.0, 0.0) == 0


def test_distance_is_symmetric():
    assert distance_km(*AUCKLAND, *WELLINGTON) == pytest.approx(distance_km(*WELLINGTON, *AUCKLAND))


def test_auckland_to_wellington():
    distance = distance_km(*AUCKLAND, *WELLINGTON)
    assert 490 < distance < 500


def test_london_to_paris_within_one_percent():
    distance = distance_km(51.5074, -0.1278, 48.8566, 2.3522)
    assert abs(distance - 343.5) / 343.5 < 0.01


def test_short_distance():
    distance = distance_km(-36.8485, 174.7633, -36.8575, 174.7633)
    assert 0.9 < distance < 1.1


def test_antipodal_points_do_not_produce_nan():
    distance = distance_km(0.0, 0.0, 0.0, 180.0)
    assert distance == pytest.approx(6371.0 * 3.141592653589793, rel=1e-9)


def test_nztm_false_origin_maps_to_central_meridian():
    point = projected_to_geographic(1600000.0, 10000000.0)
    assert point.latitude == pytest.approx(0.0, abs=1e-6)
    assert point.longitude == pytest.approx(173.0, abs=1e-6)


def test_nztm_on_central_meridian():
    point = projected_to_geographic(1600000.0, 5500000.0)
    assert point.longitude == pytest.approx(173.0, abs=1e-6)
    assert point.latitude == pytest.approx(-40.651, abs=0.01)


def test_nztm_auckland_domain():
    point = projected_to_geographic(1758229.0, 5919188.0)
    assert point.latitude == pytest.approx(-36.860, abs=0.01)
    assert point.longitude == pytest.approx(174.775, abs=0.01)


def test_nztm_wellington_te_papa():
    point = projected_to_geographic(1749212.0, 5427462.0)
    assert point.latitude == pytest.approx(-41.2905, abs=0.01)
    assert point.longitude == pytest.approx(174.782, abs=0.01)


def test_nztm_landmarks_stay_apart():
    domain = projected_to_geographic(1758229.0, 5919188.0)
    te_papa = projected_to_geographic(1749212.0, 5427462.0)
    # Auckland Domain to Te Papa, almost due south
    assert distance_km(domain.latitude, domain.longitude, te_papa.latitude, te_papa.longitude) == pytest.approx(
        492.6, abs=2.0
    )
