"""Per-listing apartment complex resolution."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..config import Settings, config
from ..models.listing import Listing, ResolutionMethod, is_valid_point
from ..models.reference import ApartmentComplex
from ..spatial.geo_index import GeoIndex
from ..spatial.street_index import StreetIndex
from .extractor import ComplexNameExtractor
from .index import ComplexIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplexMatch:
    """A resolved complex and how it was found."""

    complex: ApartmentComplex
    method: ResolutionMethod
    candidate: Optional[str] = None


class ComplexResolver:
    """Resolve the residential complex a listing belongs to.

    Text wins over geometry: a complex named in the listing is a more
    precise signal than a footprint the point happens to fall into.
    Order of attempts:

    1. Candidates extracted from the title, then the description, looked
       up exactly in the complex name index (``complex_text``)
    2. The same candidates looked up by name similarity (``complex_fuzzy``)
    3. Footprint containment of the listing point (``complex_contains``)
    4. The nearest complex centroid within ``complex_nearest_radius_m``
       (``complex_nearest``), for complexes known only by a point

    Example:
        resolver = ComplexResolver(ComplexIndex(complexes))
        match = resolver.resolve(listing)
        if match:
            print(match.complex.id, match.method.value)
    """

    def __init__(
        self,
        index: ComplexIndex,
        extractor: Optional[ComplexNameExtractor] = None,
        settings: Optional[Settings] = None,
    ):
        self.index = index
        self.settings = settings or config
        self.extractor = extractor or ComplexNameExtractor(
            min_length=self.settings.complex_name_min_length,
            max_length=self.settings.complex_name_max_length,
        )

    def candidates(self, listing: Listing) -> list[str]:
        """Blacklist-filtered name candidates, title candidates first."""
        found: list[str] = []
        for text in (listing.title_text, listing.description_text):
            for name in self.extractor.extract(text):
                if name not in found:
                    found.append(name)
        return found

    def resolve(self, listing: Listing) -> Optional[ComplexMatch]:
        """Find the listing's complex.

        Args:
            listing: Listing with text and/or coordinates

        Returns:
            The match, or None (the common case)
        """
        candidates = self.candidates(listing)

        for name in candidates:
            complex_ = self.index.lookup(name)
            if complex_ is not None:
                logger.debug(f"Listing {listing.id}: complex {complex_.id} by name '{name}'")
                return ComplexMatch(complex_, ResolutionMethod.COMPLEX_TEXT, name)

        for name in candidates:
            complex_ = self.index.fuzzy_lookup(
                name,
                self.settings.complex_fuzzy_threshold,
                self.settings.complex_fuzzy_min_length,
            )
            if complex_ is not None:
                logger.debug(f"Listing {listing.id}: complex {complex_.id} by similar name '{name}'")
                return ComplexMatch(complex_, ResolutionMethod.COMPLEX_FUZZY, name)

        point = listing.point()
        if point is not None:
            complex_ = self.index.containing(*point)
            if complex_ is not None:
                logger.debug(f"Listing {listing.id}: complex {complex_.id} by footprint")
                return ComplexMatch(complex_, ResolutionMethod.COMPLEX_CONTAINS)

            complex_ = self.index.nearest(*point, self.settings.complex_nearest_radius_m)
            if complex_ is not None:
                logger.debug(f"Listing {listing.id}: complex {complex_.id} by nearby centroid")
                return ComplexMatch(complex_, ResolutionMethod.COMPLEX_NEAREST)

        return None


def enrich_complexes(
    complexes: Iterable[ApartmentComplex],
    geo_index: GeoIndex,
    street_index: Optional[StreetIndex] = None,
    radius_steps: Optional[Sequence[int]] = None,
) -> list[ApartmentComplex]:
    """Fill missing ``geo_id``/``street_id`` of complexes from their centroid.

    Uses the same containment and escalating nearest-street search as
    listings, so a listing that inherits a complex's references ends up
    where its own coordinates would have put it.

    Args:
        complexes: Linked complexes
        geo_index: Geo hierarchy
        street_index: Streets, or None to fill geo ids only
        radius_steps: Street search radii (defaults to settings)

    Returns:
        Copies of the complexes; existing ids are kept
    """
    steps = list(radius_steps if radius_steps is not None else config.street_radius_steps)
    enriched: list[ApartmentComplex] = []
    filled_geo = filled_street = 0

    for complex_ in complexes:
        changes: dict = {}
        if not is_valid_point(complex_.lat, complex_.lng):
            enriched.append(complex_)
            continue

        geo_id = complex_.geo_id
        if geo_id is None:
            node = geo_index.resolve(complex_.lat, complex_.lng)
            if node is not None:
                geo_id = node.id
                changes["geo_id"] = geo_id
                filled_geo += 1

        if complex_.street_id is None and street_index is not None:
            for radius in steps:
                street = street_index.nearest(complex_.lat, complex_.lng, geo_id, radius)
                if street is not None:
                    changes["street_id"] = street.id
                    filled_street += 1
                    break

        enriched.append(complex_.model_copy(update=changes) if changes else complex_)

    logger.info(f"Enriched complexes: {filled_geo} geo ids, {filled_street} street ids filled")
    return enriched
