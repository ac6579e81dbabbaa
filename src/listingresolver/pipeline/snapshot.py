"""Immutable bundle of the reference indexes a pipeline run resolves against."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..complexes.index import ComplexIndex
from ..complexes.resolver import enrich_complexes
from ..config import Settings, config
from ..models.reference import ApartmentComplex, GeoNode, Street
from ..spatial.geo_index import GeoIndex
from ..spatial.street_index import StreetIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceSnapshot:
    """GeoIndex + StreetIndex + ComplexIndex, built once per run.

    Shared read-only by every worker. Picking up new reference data (a
    street rename, a new complex) means building a new snapshot and a new
    pipeline.
    """

    geo_index: GeoIndex
    street_index: StreetIndex
    complex_index: ComplexIndex

    @classmethod
    def build(
        cls,
        geo_nodes: Iterable[GeoNode],
        streets: Iterable[Street],
        complexes: Iterable[ApartmentComplex] = (),
        enrich: bool = True,
        settings: Optional[Settings] = None,
    ) -> "ReferenceSnapshot":
        """Build all indexes from in-memory reference rows.

        Args:
            geo_nodes: Geo hierarchy with polygons
            streets: Streets with geometry and name history
            complexes: Linked complex table
            enrich: Fill missing complex geo/street ids from their centroid
            settings: Settings override (street radius steps)
        """
        settings = settings or config
        geo_index = GeoIndex(geo_nodes)
        street_index = StreetIndex(streets, geo_index)
        complexes = list(complexes)
        if enrich and complexes:
            complexes = enrich_complexes(
                complexes, geo_index, street_index, settings.street_radius_steps
            )
        snapshot = cls(geo_index, street_index, ComplexIndex(complexes))
        logger.info(
            f"Reference snapshot ready: {len(geo_index)} geo nodes, "
            f"{len(street_index)} streets, {len(snapshot.complex_index)} complexes"
        )
        return snapshot
