import math
import random

import pytest

from jobmatch.core.exceptions import InvalidLocationError
from jobmatch.schemas.common import Location
from jobmatch.services.geo.location import (
    bounding_box,
    distance_km,
    find_within_radius,
    format_distance,
    is_valid_location,
)
from tests.factories import KATHMANDU

POKHARA = Location(latitude=28.2096, longitude=83.9856)


def test_distance_between_kathmandu_and_pokhara():
    # Roughly 143 km as the crow flies
    assert 140 < distance_km(KATHMANDU, POKHARA) < 147


def test_distance_is_rounded_to_two_decimals():
    d = distance_km(KATHMANDU, POKHARA)
    assert d == round(d, 2)


def test_distance_is_symmetric_and_zero_on_self():
    rng = random.Random(7)
    for _ in range(200):
        a = Location(latitude=rng.uniform(-90, 90), longitude=rng.uniform(-180, 180))
        b = Location(latitude=rng.uniform(-90, 90), longitude=rng.uniform(-180, 180))
        assert distance_km(a, b) == distance_km(b, a)
        assert distance_km(a, a) == 0


def test_antipodal_points_do_not_blow_up():
    a = Location(latitude=0, longitude=0)
    b = Location(latitude=0, longitude=180)
    assert distance_km(a, b) == pytest.approx(math.pi * 6371, abs=0.01)


@pytest.mark.parametrize(
    "location",
    [
        Location(),
        Location(latitude=27.7),
        Location(latitude=91, longitude=0),
        Location(latitude=0, longitude=-180.5),
        Location(latitude=float("nan"), longitude=0),
        Location(latitude=0, longitude=float("inf")),
    ],
)
def test_invalid_coordinates_are_rejected(location):
    assert not is_valid_location(location)
    with pytest.raises(InvalidLocationError):
        distance_km(location, KATHMANDU)


def test_bounding_box_uses_degree_approximation_at_low_latitude():
    box = bounding_box(KATHMANDU, 10)
    assert box.max_lat - KATHMANDU.latitude == pytest.approx(10 / 111)
    lon_delta = 10 / (111 * math.cos(math.radians(KATHMANDU.latitude)))
    assert box.max_lon - KATHMANDU.longitude == pytest.approx(lon_delta, rel=1e-3)


def test_bounding_box_rejects_negative_radius():
    with pytest.raises(InvalidLocationError):
        bounding_box(KATHMANDU, -1)


def test_bounding_box_contains_every_point_within_radius():
    rng = random.Random(42)
    for _ in range(2000):
        center = Location(latitude=rng.uniform(-89.9, 89.9), longitude=rng.uniform(-180, 180))
        radius = rng.choice([0.5, 5, 10, 30, 100, 500])
        bearing = rng.uniform(0, 2 * math.pi)
        travelled = rng.uniform(0, radius) / 6371.0

        lat1 = math.radians(center.latitude)
        lon1 = math.radians(center.longitude)
        lat2 = math.asin(
            math.sin(lat1) * math.cos(travelled)
            + math.cos(lat1) * math.sin(travelled) * math.cos(bearing)
        )
        lon2 = lon1 + math.atan2(
            math.sin(bearing) * math.sin(travelled) * math.cos(lat1),
            math.cos(travelled) - math.sin(lat1) * math.sin(lat2),
        )
        lon2_deg = (math.degrees(lon2) + 540) % 360 - 180
        point = Location(latitude=math.degrees(lat2), longitude=lon2_deg)

        if distance_km(center, point) <= radius:
            assert bounding_box(center, radius).contains(point), (center, radius, point)


def test_bounding_box_near_pole_spans_all_longitudes():
    box = bounding_box(Location(latitude=89.5, longitude=10), 100)
    assert box.min_lon == -180 and box.max_lon == 180
    assert box.max_lat == 90


def test_bounding_box_across_antimeridian_spans_all_longitudes():
    box = bounding_box(Location(latitude=0, longitude=179.95), 20)
    assert box.contains(Location(latitude=0, longitude=-179.95))


def test_find_within_radius_sorts_closest_first_and_skips_unknown():
    items = [
        ("far", Location(latitude=27.90, longitude=85.32)),
        ("near", Location(latitude=27.72, longitude=85.33)),
        ("unknown", Location()),
        ("pokhara", POKHARA),
    ]
    found = find_within_radius(KATHMANDU, items, 30, key=lambda item: item[1])
    assert [item[0] for item, _ in found] == ["near", "far"]
    assert found[0][1] <= found[1][1]


@pytest.mark.parametrize(
    "km, text",
    [(0.85, "850m"), (0.0, "0m"), (1.0, "1.0km"), (3.24, "3.2km"), (12.0, "12.0km")],
)
def test_format_distance(km, text):
    assert format_distance(km) == text
