"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional

from ..data.geo_reference import lookup_city, road_distance_km

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def resolve_coordinates(
    city: str | None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> Optional[tuple[float, float]]:
    """Return explicit coordinates when given, otherwise the centroid of a known city."""

    if latitude is not None and longitude is not None:
        return (latitude, longitude)
    info = lookup_city(city)
    if info is None:
        return None
    return (info.latitude, info.longitude)


def travel_distance_km(
    origin_city: str | None,
    origin_coords: Optional[tuple[float, float]],
    destination_city: str | None,
    destination_coords: Optional[tuple[float, float]],
) -> Optional[float]:
    """Distance between two places, preferring the known road distance table.

    Returns None when neither a table entry nor both coordinates are available.
    """

    known = road_distance_km(origin_city, destination_city)
    if known is not None:
        return known
    if origin_coords is None or destination_coords is None:
        return None
    return haversine_km(*origin_coords, *destination_coords)
