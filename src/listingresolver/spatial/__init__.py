"""Spatial indexes over the geographic hierarchy and the street network."""

from .geo_index import TYPE_PRIORITY, GeoIndex
from .geometry import distance_to_geometry_m, haversine_distance
from .street_index import StreetIndex

__all__ = [
    "GeoIndex",
    "StreetIndex",
    "TYPE_PRIORITY",
    "distance_to_geometry_m",
    "haversine_distance",
]
