# Geospatial kernel
from jobmatch.services.geo.location import (
    BoundingBox,
    bounding_box,
    distance_km,
    find_within_radius,
    format_distance,
    is_valid_location,
)
