"""
Geospatial helpers for proximity matching and urgent alerts.

Distances are great-circle (haversine) distances in kilometers. The
bounding box is only a cheap pre-filter for repository queries; callers
must re-check candidates with ``distance_km`` afterwards.
"""

import math
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from pydantic import ConfigDict

from jobmatch.core.exceptions import InvalidLocationError
from jobmatch.schemas.base import CustomBaseModel
from jobmatch.schemas.common import Location

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0

T = TypeVar("T")


class BoundingBox(CustomBaseModel):
    model_config = ConfigDict(frozen=True)

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, location: Location) -> bool:
        if not is_valid_location(location):
            return False
        return (
            self.min_lat <= location.latitude <= self.max_lat
            and self.min_lon <= location.longitude <= self.max_lon
        )


def is_valid_location(location: Optional[Location]) -> bool:
    """True iff both coordinates are finite and inside their ranges."""
    return location is not None and location.is_valid


def _require_valid(location: Optional[Location], label: str) -> Location:
    if not is_valid_location(location):
        raise InvalidLocationError(
            f"{label} has invalid coordinates: "
            f"lat={getattr(location, 'latitude', None)!r}, "
            f"lon={getattr(location, 'longitude', None)!r}"
        )
    return location


def _haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    # Floating error can push ``a`` a hair past 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(a: Location, b: Location) -> float:
    """
    Great-circle distance between two locations, rounded to 2 decimals.

    Raises:
        InvalidLocationError: if either location is missing or out of range
    """
    _require_valid(a, "first location")
    _require_valid(b, "second location")
    return round(_haversine_km(a.latitude, a.longitude, b.latitude, b.longitude), 2)


def bounding_box(center: Location, radius_km: float) -> BoundingBox:
    """
    Rectangle that contains every point within ``radius_km`` of ``center``.

    Uses ``radius/111`` degrees of latitude and ``radius/(111*cos(lat))``
    degrees of longitude. Near the poles that longitude delta is too
    narrow, so it is widened to the exact spherical extent, and a box
    that reaches a pole or crosses the antimeridian spans every longitude.
    """
    _require_valid(center, "center")
    if radius_km is None or not math.isfinite(radius_km) or radius_km < 0:
        raise InvalidLocationError(f"radius must be a non-negative number, got {radius_km!r}")

    lat, lon = center.latitude, center.longitude
    lat_delta = radius_km / KM_PER_DEGREE_LAT
    min_lat = max(-90.0, lat - lat_delta)
    max_lat = min(90.0, lat + lat_delta)

    full_span = BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lon=-180.0, max_lon=180.0)

    cos_lat = math.cos(math.radians(lat))
    angular = radius_km / EARTH_RADIUS_KM
    if min_lat <= -90.0 or max_lat >= 90.0 or math.sin(angular) >= cos_lat:
        return full_span

    lon_delta = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    exact_delta = math.degrees(math.asin(math.sin(angular) / cos_lat))
    lon_delta = max(lon_delta, exact_delta)

    min_lon = lon - lon_delta
    max_lon = lon + lon_delta
    if min_lon < -180.0 or max_lon > 180.0:
        return full_span

    return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lon=min_lon, max_lon=max_lon)


def find_within_radius(
    center: Location,
    items: Iterable[T],
    radius_km: float,
    key: Callable[[T], Optional[Location]],
) -> List[Tuple[T, float]]:
    """
    Exact-distance filter. Items without a valid location are skipped.

    Returns:
        (item, distance) pairs within the radius, closest first
    """
    _require_valid(center, "center")
    nearby = []
    for item in items:
        location = key(item)
        if not is_valid_location(location):
            continue
        distance = distance_km(center, location)
        if distance <= radius_km:
            nearby.append((item, distance))
    nearby.sort(key=lambda pair: pair[1])
    return nearby


def format_distance(km: float) -> str:
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"
