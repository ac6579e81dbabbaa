"""Offline linkage of the curated CSV complex export with OSM polygons.

Both sources describe the same residential complexes with slightly
different names and positions. Each CSV record is paired with the best
nearby OSM feature by name similarity damped by distance; paired records
become one ``merged`` complex that keeps the curated names and gains the
OSM footprint. Everything left unpaired is kept as a standalone complex.
"""

import logging
import re
from typing import Iterable, Optional

from shapely.geometry import Polygon
from shapely.strtree import STRtree

from ..config import Settings, config
from ..models.reference import (
    ApartmentComplex,
    ComplexRecord,
    ComplexSource,
    LocalizedName,
    OsmFeature,
)
from ..spatial.geometry import haversine_distance, search_box, to_point
from ..text.normalizer import fold_diacritics, normalize

logger = logging.getLogger(__name__)

_WORD_SPLIT_RE = re.compile(r"[\s\-]+")


def _words(name: str, min_length: int) -> set[str]:
    return {w for w in _WORD_SPLIT_RE.split(fold_diacritics(name)) if len(w) >= min_length}


def string_similarity(s1: str, s2: str, settings: Optional[Settings] = None) -> float:
    """Similarity of two raw names in [0, 1].

    1.0 when the normalized names are equal, ``substring_similarity`` (0.9)
    when one contains the other, otherwise the Jaccard overlap of their
    word sets (short words ignored, case and diacritics folded).
    """
    settings = settings or config
    n1, n2 = normalize(s1), normalize(s2)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0
    if n1 in n2 or n2 in n1:
        return settings.substring_similarity

    words1 = _words(n1, settings.jaccard_min_word_length)
    words2 = _words(n2, settings.jaccard_min_word_length)
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / len(words1 | words2)


def _contains_words(longer: list[str], shorter: list[str]) -> bool:
    size = len(shorter)
    return any(longer[i:i + size] == shorter for i in range(len(longer) - size + 1))


def word_similarity(s1: str, s2: str, settings: Optional[Settings] = None) -> float:
    """Like ``string_similarity``, but containment only counts for whole words.

    "перлина" inside "перлина моря" scores ``substring_similarity``;
    "ера" inside "геральдика" does not. Used when matching names pulled
    from listing text, where a stray substring is a false positive.
    """
    settings = settings or config
    n1, n2 = normalize(s1), normalize(s2)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0

    seq1 = [w for w in _WORD_SPLIT_RE.split(n1) if w]
    seq2 = [w for w in _WORD_SPLIT_RE.split(n2) if w]
    longer, shorter = (seq1, seq2) if len(seq1) >= len(seq2) else (seq2, seq1)
    if _contains_words(longer, shorter):
        return settings.substring_similarity

    words1 = _words(n1, settings.jaccard_min_word_length)
    words2 = _words(n2, settings.jaccard_min_word_length)
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / len(words1 | words2)


def name_similarity(
    a: LocalizedName, b: LocalizedName, settings: Optional[Settings] = None
) -> float:
    """Best ``string_similarity`` over every pair of available names."""
    best = 0.0
    for left in a.variants():
        for right in b.variants():
            best = max(best, string_similarity(left, right, settings))
            if best >= 1.0:
                return best
    return best


def _osm_position(feature: OsmFeature) -> Optional[tuple[float, float]]:
    if len(feature.ring) >= 4:
        centroid = Polygon(feature.ring).centroid
        if not centroid.is_empty:
            return centroid.y, centroid.x
    if feature.lat is not None and feature.lng is not None:
        return feature.lat, feature.lng
    return None


class ComplexLinker:
    """Deduplicate complexes arriving from the CSV export and from OSM.

    Example:
        linker = ComplexLinker()
        complexes = linker.link(read_complex_csv(path), osm_features)
        merged = [c for c in complexes if c.source == ComplexSource.MERGED]
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or config

    def score(self, record: ComplexRecord, feature: OsmFeature, distance_m: float) -> float:
        """Name similarity damped linearly by distance (up to ``merge_distance_penalty``)."""
        similarity = name_similarity(record.name, feature.name, self.settings)
        penalty = self.settings.merge_distance_penalty * distance_m / self.settings.merge_radius_m
        return similarity * (1 - penalty)

    def link(
        self,
        records: Iterable[ComplexRecord],
        features: Iterable[OsmFeature],
    ) -> list[ApartmentComplex]:
        """Build the authoritative complex table.

        CSV records are processed in order and each OSM feature pairs with at
        most one record. Ids are assigned from 1: CSV-derived complexes first,
        then unpaired OSM complexes.

        Args:
            records: Curated CSV rows
            features: OSM building/landuse features

        Returns:
            Linked complexes with ``source`` set to merged, csv-import or osm
        """
        radius = self.settings.merge_radius_m

        osm: list[tuple[OsmFeature, float, float]] = []
        for feature in features:
            if not feature.tags.get("name"):
                continue
            position = _osm_position(feature)
            if position is None:
                continue
            osm.append((feature, position[0], position[1]))

        tree = STRtree([to_point(lat, lng) for _, lat, lng in osm]) if osm else None
        matched: set[int] = set()
        result: list[ApartmentComplex] = []

        for record in records:
            best: Optional[tuple[float, float, int]] = None
            if tree is not None:
                for i in tree.query(search_box(record.lat, record.lng, radius)):
                    i = int(i)
                    if i in matched:
                        continue
                    feature, lat, lng = osm[i]
                    distance = haversine_distance(record.lat, record.lng, lat, lng)
                    if distance > radius:
                        continue
                    score = self.score(record, feature, distance)
                    key = (score, -distance, -feature.osm_id)
                    if best is None or key > (best[0], -best[1], -osm[best[2]][0].osm_id):
                        best = (score, distance, i)

            complex_id = len(result) + 1
            if best is not None and best[0] > self.settings.merge_accept_score:
                score, distance, i = best
                matched.add(i)
                feature, lat, lng = osm[i]
                logger.debug(
                    f"Matched '{record.name.display()}' -> OSM '{feature.tags.get('name')}' "
                    f"(score {score:.2f}, {distance:.0f}m)"
                )
                result.append(ApartmentComplex(
                    id=complex_id,
                    name=record.name,
                    lat=lat,
                    lng=lng,
                    geometry=feature.polygon(),
                    source=ComplexSource.MERGED,
                    osm_id=feature.osm_id,
                    osm_type=feature.osm_type,
                ))
            else:
                result.append(ApartmentComplex(
                    id=complex_id,
                    name=record.name,
                    lat=record.lat,
                    lng=record.lng,
                    source=ComplexSource.CSV_IMPORT,
                ))

        for i, (feature, lat, lng) in enumerate(osm):
            if i in matched:
                continue
            result.append(ApartmentComplex(
                id=len(result) + 1,
                name=feature.name,
                lat=lat,
                lng=lng,
                geometry=feature.polygon(),
                source=ComplexSource.OSM,
                osm_id=feature.osm_id,
                osm_type=feature.osm_type,
            ))

        merged = len(matched)
        logger.info(
            f"Linked complexes: {len(result)} total, {merged} merged, "
            f"{len(result) - merged - (len(osm) - merged)} CSV only, {len(osm) - merged} OSM only"
        )
        return result
