"""Street geometries and names: nearest-street search and name lookup."""

import logging
from collections import defaultdict
from typing import Iterable, Mapping, Optional

from shapely.strtree import STRtree

from ..errors import MalformedInputError
from ..models.reference import Street
from ..text.normalizer import normalize
from .geo_index import GeoIndex
from .geometry import LINE_TYPES, distance_to_geometry_m, parse_geometry, search_box

logger = logging.getLogger(__name__)


class StreetIndex:
    """Read-only index of streets.

    Streets are searchable by geometry (nearest line within a radius,
    scoped to a geo node and everything nested inside it) and by
    normalized name, where a street answers to its current name and to
    every name it had before being renamed.

    Example:
        streets = StreetIndex(rows, geo_index)
        street = streets.nearest(46.4846, 30.7390, geo_id=12, radius_m=200)
        same_name = streets.by_normalized_name("Дерибасівська")
    """

    def __init__(self, streets: Iterable[Street], geo_index: Optional[GeoIndex] = None):
        """Build the index.

        Args:
            streets: All streets; malformed geometries are logged and the
                     street stays searchable by name only
            geo_index: Geo hierarchy used to widen a geo scope to its
                       descendants. Without it a scope is the node alone.
        """
        self._geo_index = geo_index
        self._streets: dict[int, Street] = {}
        self._by_geo: dict[Optional[int], list[Street]] = defaultdict(list)
        self._by_name: dict[str, list[Street]] = defaultdict(list)
        self._renamed: dict[str, list[Street]] = defaultdict(list)
        self._street_names: dict[int, list[str]] = {}

        line_streets: list[Street] = []
        geometries = []

        for street in sorted(streets, key=lambda s: s.id):
            self._streets[street.id] = street
            self._by_geo[street.geo_id].append(street)

            names: list[str] = []
            for variant in street.name_variants():
                key = normalize(variant)
                if key and key not in names:
                    names.append(key)
                    self._by_name[key].append(street)
            self._street_names[street.id] = names

            for old_name in street.historical_names():
                key = normalize(old_name)
                if key and street not in self._renamed[key]:
                    self._renamed[key].append(street)

            try:
                geometry = parse_geometry(street.geometry, LINE_TYPES, "street_index", street.id)
            except MalformedInputError as e:
                logger.warning(f"Street without usable geometry: {e}")
                continue
            if geometry is not None:
                line_streets.append(street)
                geometries.append(geometry)

        self._line_streets = line_streets
        self._geometries = geometries
        self._geometry_by_id = {s.id: g for s, g in zip(line_streets, geometries)}
        self._tree = STRtree(geometries) if geometries else None

        logger.info(
            f"StreetIndex: {len(self._streets)} streets, {len(line_streets)} with geometry, "
            f"{len(self._by_name)} names, {len(self._renamed)} historical names"
        )

    def __len__(self) -> int:
        return len(self._streets)

    def get(self, street_id: Optional[int]) -> Optional[Street]:
        if street_id is None:
            return None
        return self._streets.get(street_id)

    def names_of(self, street_id: int) -> list[str]:
        """Normalized names (current and historical) of a street."""
        return list(self._street_names.get(street_id, []))

    # =========================================================================
    # Scoping
    # =========================================================================

    def scope_ids(self, geo_id: int) -> set[int]:
        """Geo ids whose streets belong to the scope of ``geo_id``."""
        if self._geo_index is None:
            return {geo_id}
        return self._geo_index.descendant_ids(geo_id)

    def streets_in_scope(self, geo_id: int) -> list[Street]:
        """Streets owned by ``geo_id`` or by any node nested inside it."""
        found: list[Street] = []
        for scoped_id in sorted(self.scope_ids(geo_id)):
            found.extend(self._by_geo.get(scoped_id, []))
        return found

    def name_index(self, geo_id: Optional[int] = None) -> Mapping[str, list[Street]]:
        """Normalized name to streets, scoped to a geo node or global.

        The global mapping is shared; callers must not modify it.
        """
        if geo_id is None:
            return self._by_name
        scoped: dict[str, list[Street]] = defaultdict(list)
        for street in self.streets_in_scope(geo_id):
            for key in self._street_names.get(street.id, []):
                scoped[key].append(street)
        return scoped

    # =========================================================================
    # Name lookup
    # =========================================================================

    def by_normalized_name(self, name: str) -> list[Street]:
        """All streets whose current or historical name normalizes to ``name``."""
        return list(self._by_name.get(normalize(name), []))

    def rename_map(self) -> dict[str, list[Street]]:
        """Historical (pre-rename) normalized name to the streets that carried it."""
        return {name: list(streets) for name, streets in self._renamed.items()}

    # =========================================================================
    # Geometry
    # =========================================================================

    def distance_m(self, street: Street, lat: float, lng: float) -> Optional[float]:
        """Distance in meters from the point to the street line."""
        geometry = self._geometry_by_id.get(street.id)
        if geometry is None:
            return None
        return distance_to_geometry_m(geometry, lat, lng)

    def within(self, lat: float, lng: float, radius_m: float) -> list[tuple[Street, float]]:
        """Streets within ``radius_m`` (inclusive), nearest first."""
        if self._tree is None:
            return []
        hits = self._tree.query(search_box(lat, lng, radius_m))
        found = []
        for i in hits:
            distance = distance_to_geometry_m(self._geometries[int(i)], lat, lng)
            if distance <= radius_m:
                found.append((self._line_streets[int(i)], distance))
        found.sort(key=lambda pair: (pair[1], pair[0].id))
        return found

    def nearest(
        self,
        lat: float,
        lng: float,
        geo_id: Optional[int],
        radius_m: float,
    ) -> Optional[Street]:
        """Nearest street within ``radius_m`` of the point.

        Streets in the scope of ``geo_id`` are preferred; only when none of
        them is within the radius is the search widened to every street.

        Args:
            lat: Latitude of the point
            lng: Longitude of the point
            geo_id: Geo node the point was resolved to, or None
            radius_m: Search radius in meters (inclusive)

        Returns:
            The nearest street, or None if nothing is within the radius
        """
        candidates = self.within(lat, lng, radius_m)
        if not candidates:
            return None

        if geo_id is not None:
            scope = self.scope_ids(geo_id)
            for street, distance in candidates:
                if street.geo_id in scope:
                    logger.debug(f"Nearest street in geo {geo_id}: {street.id} at {distance:.0f}m")
                    return street

        street, distance = candidates[0]
        logger.debug(f"Nearest street (any geo): {street.id} at {distance:.0f}m")
        return street
