"""Lookup structures over the linked apartment complex table."""

import logging
from collections import defaultdict
from typing import Iterable, Optional

from shapely.strtree import STRtree

from ..errors import MalformedInputError
from ..models.listing import is_valid_point
from ..models.reference import ApartmentComplex, ComplexSource
from ..spatial.geometry import POLYGON_TYPES, haversine_distance, parse_geometry, search_box, to_point
from ..text.normalizer import normalize
from .linkage import word_similarity

logger = logging.getLogger(__name__)

# Curated-and-mapped first, then curated only, then OSM only
SOURCE_PRIORITY: dict[ComplexSource, int] = {
    ComplexSource.MERGED: 0,
    ComplexSource.CSV_IMPORT: 1,
    ComplexSource.OSM: 2,
}


def _preference(complex_: ApartmentComplex) -> tuple[int, int]:
    return (SOURCE_PRIORITY.get(complex_.source, len(SOURCE_PRIORITY)), complex_.id)


class ComplexIndex:
    """Read-only index of apartment complexes by name, footprint and centroid.

    Example:
        index = ComplexIndex(complexes)
        complex_ = index.lookup("ЖК Аврора")
        inside = index.containing(46.4400, 30.7300)
        close_by = index.nearest(46.4400, 30.7300, radius_m=100)
    """

    def __init__(self, complexes: Iterable[ApartmentComplex]):
        """Build the index.

        Args:
            complexes: Linked complexes; unusable footprints are logged and
                       the complex stays searchable by name and centroid
        """
        self._complexes: dict[int, ApartmentComplex] = {}
        by_name: dict[str, list[ApartmentComplex]] = defaultdict(list)
        footprint_complexes: list[ApartmentComplex] = []
        footprints = []
        centroid_complexes: list[ApartmentComplex] = []

        for complex_ in complexes:
            self._complexes[complex_.id] = complex_
            for variant in complex_.name.variants():
                key = normalize(variant)
                if key and complex_ not in by_name[key]:
                    by_name[key].append(complex_)

            if is_valid_point(complex_.lat, complex_.lng):
                centroid_complexes.append(complex_)

            try:
                footprint = parse_geometry(
                    complex_.geometry, POLYGON_TYPES, "complex_index", complex_.id
                )
            except MalformedInputError as e:
                logger.warning(f"Complex footprint skipped: {e}")
                continue
            if footprint is not None:
                footprint_complexes.append(complex_)
                footprints.append(footprint)

        self._by_name = {key: sorted(found, key=_preference) for key, found in by_name.items()}
        self._footprint_complexes = footprint_complexes
        self._footprints = footprints
        self._tree = STRtree(footprints) if footprints else None
        self._centroid_complexes = centroid_complexes
        self._centroid_tree = (
            STRtree([to_point(c.lat, c.lng) for c in centroid_complexes])
            if centroid_complexes
            else None
        )

        logger.info(
            f"ComplexIndex: {len(self._complexes)} complexes, {len(self._by_name)} names, "
            f"{len(footprints)} footprints"
        )

    def __len__(self) -> int:
        return len(self._complexes)

    def get(self, complex_id: Optional[int]) -> Optional[ApartmentComplex]:
        if complex_id is None:
            return None
        return self._complexes.get(complex_id)

    def lookup(self, name: str) -> Optional[ApartmentComplex]:
        """Exact lookup of a name after normalization.

        A name shared by several complexes resolves to the preferred source
        (merged, then csv-import, then osm), then the lowest id.
        """
        found = self._by_name.get(normalize(name))
        return found[0] if found else None

    def fuzzy_lookup(
        self, name: str, threshold: float, min_length: int = 4
    ) -> Optional[ApartmentComplex]:
        """Best complex whose name is similar to ``name`` by whole words.

        Names shorter than ``min_length`` on either side never match
        fuzzily. Ties go to the preferred source, then the lowest id.
        """
        query = normalize(name)
        if len(query) < min_length:
            return None

        best: Optional[tuple[float, ApartmentComplex]] = None
        for key, found in self._by_name.items():
            if len(key) < min_length:
                continue
            similarity = word_similarity(query, key)
            if similarity < threshold:
                continue
            candidate = found[0]
            if (
                best is None
                or similarity > best[0]
                or (similarity == best[0] and _preference(candidate) < _preference(best[1]))
            ):
                best = (similarity, candidate)
        return best[1] if best else None

    def containing(self, lat: float, lng: float) -> Optional[ApartmentComplex]:
        """Complex whose footprint contains the point.

        Nested or overlapping footprints resolve to the smallest one, then
        the lowest id.
        """
        if self._tree is None:
            return None
        hits = self._tree.query(to_point(lat, lng), predicate="within")
        if len(hits) == 0:
            return None
        best = min(
            (int(i) for i in hits),
            key=lambda i: (self._footprints[i].area, self._footprint_complexes[i].id),
        )
        return self._footprint_complexes[best]

    def nearest(self, lat: float, lng: float, radius_m: float) -> Optional[ApartmentComplex]:
        """Complex with the closest centroid within ``radius_m`` (inclusive).

        Complexes known only by a point (no footprint) are reachable from
        coordinates this way. Equal distances go to the lowest id.
        """
        if self._centroid_tree is None:
            return None
        best: Optional[tuple[float, int, ApartmentComplex]] = None
        for i in self._centroid_tree.query(search_box(lat, lng, radius_m)):
            complex_ = self._centroid_complexes[int(i)]
            distance = haversine_distance(lat, lng, complex_.lat, complex_.lng)
            if distance > radius_m:
                continue
            if best is None or (distance, complex_.id) < best[:2]:
                best = (distance, complex_.id, complex_)
        return best[2] if best else None
