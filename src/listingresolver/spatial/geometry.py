"""Geometry helpers shared by the spatial indexes.

Coordinates follow GeoJSON order inside geometries: x = longitude,
y = latitude. Public functions take (lat, lng) like the rest of the code.
"""

import math
from typing import Any, Optional

import shapely
from shapely.geometry import Point, box, shape
from shapely.geometry.base import BaseGeometry

from ..errors import MalformedInputError

EARTH_RADIUS_M = 6371000  # mean Earth radius in meters

POLYGON_TYPES = ("Polygon", "MultiPolygon")
LINE_TYPES = ("LineString", "MultiLineString")


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two coordinates using the Haversine formula.

    Args:
        lat1: Latitude of point 1 (degrees).
        lon1: Longitude of point 1 (degrees).
        lat2: Latitude of point 2 (degrees).
        lon2: Longitude of point 2 (degrees).

    Returns:
        Distance in meters.
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def meters_per_degree(lat: float) -> tuple[float, float]:
    """Meters per degree of longitude and latitude around ``lat``."""
    per_lat = math.radians(1) * EARTH_RADIUS_M
    per_lng = per_lat * math.cos(math.radians(lat))
    return per_lng, per_lat


def to_point(lat: float, lng: float) -> Point:
    return Point(lng, lat)


def search_box(lat: float, lng: float, radius_m: float) -> BaseGeometry:
    """Degree bounding box that contains every point within ``radius_m``."""
    per_lng, per_lat = meters_per_degree(lat)
    dlat = radius_m / per_lat
    # Near the poles the longitude span degenerates; cap it at the full range
    dlng = radius_m / per_lng if per_lng > 1e-6 else 180.0
    return box(lng - dlng, lat - dlat, lng + dlng, lat + dlat)


def distance_to_geometry_m(geometry: BaseGeometry, lat: float, lng: float) -> float:
    """Geodesic distance in meters from a point to a line or polygon.

    The geometry is projected onto a local tangent plane centred on the
    point (equirectangular), which stays well under 1% off the true
    distance for the few-kilometre ranges the street search uses.
    """
    per_lng, per_lat = meters_per_degree(lat)
    local = shapely.transform(
        geometry, lambda coords: (coords - (lng, lat)) * (per_lng, per_lat)
    )
    return float(local.distance(Point(0.0, 0.0)))


def parse_geometry(
    data: Optional[dict[str, Any]],
    allowed_types: tuple[str, ...],
    component: str,
    item_id: Optional[object] = None,
) -> Optional[BaseGeometry]:
    """Build a shapely geometry from a GeoJSON mapping.

    Invalid polygons (self-intersecting rings are common in OSM exports) are
    repaired with ``make_valid`` and reduced to their polygonal part.

    Args:
        data: GeoJSON geometry mapping, or None
        allowed_types: Accepted GeoJSON types
        component: Name used in error messages
        item_id: Identifier of the owning record, for error messages

    Returns:
        The geometry, or None when ``data`` is None

    Raises:
        MalformedInputError: If the mapping cannot be parsed or has the wrong type
    """
    if data is None:
        return None

    geom_type = data.get("type") if isinstance(data, dict) else None
    if geom_type not in allowed_types:
        raise MalformedInputError(
            component, f"expected {'/'.join(allowed_types)} geometry, got {geom_type}", item_id
        )

    try:
        geometry = shape(data)
    except Exception as e:
        raise MalformedInputError(component, f"unparseable geometry: {e}", item_id) from e

    if geometry.is_empty:
        raise MalformedInputError(component, "empty geometry", item_id)

    if geom_type in POLYGON_TYPES and not geometry.is_valid:
        repaired = shapely.make_valid(geometry)
        polygons = [
            g for g in getattr(repaired, "geoms", [repaired]) if g.geom_type in POLYGON_TYPES
        ]
        if not polygons:
            raise MalformedInputError(component, "polygon cannot be repaired", item_id)
        geometry = shapely.union_all(polygons)

    return geometry
