"""Per-listing resolution state machine.

Every step fills one field only when it is still null, so re-running the
pipeline on a resolved listing is a no-op and a resolved value never
changes. Steps, in order:

1. geo node by polygon containment of the listing point
2. residential complex (name in text, similar name, footprint, nearby centroid)
3. street/geo inherited from a just-resolved complex
4. street named in the title, then the description: streets of the geo
   node first, then of its enclosing nodes up to the city, then any street
5. street name parsed after a street-type word, compared with nearby streets
6. nearest street, escalating through the configured radii
"""

import logging
from functools import lru_cache
from typing import Iterable, Mapping, Optional

from ..complexes.resolver import ComplexResolver
from ..config import Settings, config
from ..models.listing import Listing, ListingUpdate, ResolutionMethod, ResolutionState
from ..models.reference import GeoType, Street
from ..text.matcher import iter_matches, order_candidates
from ..text.street_parser import extract_street_names, street_similarity
from .snapshot import ReferenceSnapshot

logger = logging.getLogger(__name__)

# Text scopes widen through enclosing nodes up to the first of these
LOCALITY_TYPES = (GeoType.CITY, GeoType.VILLAGE)


def resolution_state(listing: Listing) -> ResolutionState:
    """Where a stored listing stands before it is resolved (again).

    ``COMPLETE`` means no automatic attempt can change anything: the
    street is known, or there are neither coordinates nor text to work
    with. It does not imply every field is filled. A listing that has just
    been through ``ResolutionPipeline.resolve`` is always ``COMPLETE`` for
    the snapshot it was resolved against.
    """
    if listing.street_id is not None:
        return ResolutionState.COMPLETE
    if listing.point() is None and not (listing.title_text or listing.description_text):
        return ResolutionState.COMPLETE
    if listing.geo_id is not None:
        return ResolutionState.GEO_RESOLVED
    return ResolutionState.UNRESOLVED


class ResolutionPipeline:
    """Resolve geo node, street and complex of listings against a snapshot.

    Stateless per listing: one instance can be shared by any number of
    worker threads.

    Example:
        snapshot = ReferenceSnapshot.build(geo_nodes, streets, complexes)
        pipeline = ResolutionPipeline(snapshot)
        update = pipeline.resolve(listing)
        if not update.is_empty:
            store.apply_updates([update])
    """

    def __init__(
        self,
        snapshot: ReferenceSnapshot,
        settings: Optional[Settings] = None,
        complex_resolver: Optional[ComplexResolver] = None,
    ):
        self.snapshot = snapshot
        self.settings = settings or config
        self.complex_resolver = complex_resolver or ComplexResolver(
            snapshot.complex_index, settings=self.settings
        )
        self._scoped_names = lru_cache(maxsize=1024)(self._build_scoped_names)

    # =========================================================================
    # Public API
    # =========================================================================

    def resolve(self, listing: Listing) -> ListingUpdate:
        """Run all steps on one listing.

        Args:
            listing: Listing as currently stored (resolved fields may be set)

        Returns:
            Partial update holding only newly resolved fields and their tags
        """
        geo_id = listing.geo_id
        street_id = listing.street_id
        complex_id = listing.complex_id
        methods: list[ResolutionMethod] = []

        point = listing.point()
        if point is None and (listing.lat is not None or listing.lng is not None):
            logger.debug(
                f"Listing {listing.id}: unusable coordinates ({listing.lat}, {listing.lng}), "
                f"text-only resolution"
            )

        # 1. Geo containment
        if geo_id is None and point is not None:
            node = self.snapshot.geo_index.resolve(*point)
            if node is not None:
                geo_id = node.id
                methods.append(ResolutionMethod.GEO_CONTAINS)

        # 2. Complex
        if complex_id is None:
            match = self.complex_resolver.resolve(listing)
            if match is not None:
                complex_id = match.complex.id
                methods.append(match.method)

                # 3. Inherit references from the complex
                if street_id is None and match.complex.street_id is not None:
                    street_id = match.complex.street_id
                if geo_id is None and match.complex.geo_id is not None:
                    geo_id = match.complex.geo_id

        # 4. Street named in text
        if street_id is None:
            found = self._street_from_text(listing, geo_id, point)
            if found is not None:
                street, method = found
                street_id = street.id
                methods.append(method)
                if geo_id is None and street.geo_id is not None:
                    geo_id = street.geo_id

        # 5. Street name parsed from text, matched against nearby streets
        if street_id is None and point is not None:
            street = self._street_from_parsed_name(listing, point, geo_id)
            if street is not None:
                street_id = street.id
                methods.append(ResolutionMethod.STREET_TEXT_PARSED)

        # 6. Nearest street
        if street_id is None and point is not None:
            street = self._nearest_street(point, geo_id)
            if street is not None:
                street_id = street.id
                methods.append(ResolutionMethod.STREET_NEAREST)

        update = ListingUpdate(
            listing_id=listing.id,
            geo_id=geo_id if listing.geo_id is None else None,
            street_id=street_id if listing.street_id is None else None,
            complex_id=complex_id if listing.complex_id is None else None,
            resolution_methods=[m for m in methods if m not in listing.resolution_methods],
        )
        # Every applicable step has run; another pass over the same data adds nothing
        update.state = ResolutionState.COMPLETE
        if not update.is_empty:
            logger.debug(
                f"Listing {listing.id}: geo={update.geo_id} street={update.street_id} "
                f"complex={update.complex_id} via {[m.value for m in update.resolution_methods]}"
            )
        return update

    def apply(self, listing: Listing) -> Listing:
        """Resolve a listing and return it with the update applied."""
        return listing.apply(self.resolve(listing))

    def resolve_many(self, listings: Iterable[Listing]) -> list[ListingUpdate]:
        """Resolve listings one by one, in order."""
        return [self.resolve(listing) for listing in listings]

    # =========================================================================
    # Street steps
    # =========================================================================

    def _build_scoped_names(
        self, geo_id: Optional[int]
    ) -> tuple[Mapping[str, list[Street]], tuple[str, ...]]:
        names = self.snapshot.street_index.name_index(geo_id)
        ordered = order_candidates(names.keys(), self.settings.min_text_name_length)
        return names, tuple(ordered)

    def _text_scopes(self, geo_id: Optional[int]) -> list[Optional[int]]:
        """Geo scopes searched for street names, narrowest first; None is every street."""
        if geo_id is None:
            return [None]
        scopes: list[Optional[int]] = [geo_id]
        node = self.snapshot.geo_index.get(geo_id)
        if node is None or node.type not in LOCALITY_TYPES:
            for ancestor in self.snapshot.geo_index.ancestors(geo_id):
                scopes.append(ancestor.id)
                if ancestor.type in LOCALITY_TYPES:
                    break
        scopes.append(None)
        return scopes

    def _pick_street(
        self,
        streets: list[Street],
        point: Optional[tuple[float, float]],
        max_distance_m: Optional[float] = None,
    ) -> Optional[Street]:
        """One street for a name several streets share: nearest, else lowest id.

        With ``max_distance_m`` and a point, streets further away (or without
        geometry) are not accepted.
        """
        if point is None:
            return min(streets, key=lambda s: s.id)
        index = self.snapshot.street_index

        ranked = []
        for street in streets:
            distance = index.distance_m(street, *point)
            if max_distance_m is not None and (distance is None or distance > max_distance_m):
                continue
            ranked.append((distance is None, distance or 0.0, street.id, street))
        if not ranked:
            return None
        return min(ranked, key=lambda r: r[:3])[3]

    def _street_from_text(
        self,
        listing: Listing,
        geo_id: Optional[int],
        point: Optional[tuple[float, float]],
    ) -> Optional[tuple[Street, ResolutionMethod]]:
        texts = (
            (listing.title_text, ResolutionMethod.STREET_TEXT_TITLE),
            (listing.description_text, ResolutionMethod.STREET_TEXT_DESCRIPTION),
        )
        for scope in self._text_scopes(geo_id):
            names, ordered = self._scoped_names(scope)
            if not ordered:
                continue
            max_distance = self.settings.text_street_max_distance_m if scope != geo_id else None

            for text, method in texts:
                for name in iter_matches(ordered, text, self.settings.min_text_name_length):
                    street = self._pick_street(names[name], point, max_distance)
                    if street is None:
                        logger.debug(f"Listing {listing.id}: '{name}' found but too far away")
                        continue
                    logger.debug(
                        f"Listing {listing.id}: street {street.id} named '{name}' "
                        f"({method.value}, scope {scope})"
                    )
                    return street, method
        return None

    def _street_from_parsed_name(
        self,
        listing: Listing,
        point: tuple[float, float],
        geo_id: Optional[int],
    ) -> Optional[Street]:
        """Street whose name is closest to a name parsed from the text.

        Candidates are the streets within ``parsed_street_radius_m``, those of
        the listing's geo node when any are in range. Score is the name
        similarity plus a bonus that shrinks with distance; the title is
        tried before the description.
        """
        radius = self.settings.parsed_street_radius_m
        index = self.snapshot.street_index
        nearby = index.within(point[0], point[1], radius)
        if geo_id is not None:
            scope = index.scope_ids(geo_id)
            scoped = [(s, d) for s, d in nearby if s.geo_id in scope]
            nearby = scoped or nearby
        if not nearby:
            return None

        for text in (listing.title_text, listing.description_text):
            parsed_names = extract_street_names(text)
            if not parsed_names:
                continue

            best: Optional[tuple[float, float, int, Street]] = None
            for street, distance in nearby:
                bonus = self.settings.parsed_street_distance_bonus * (1 - distance / radius)
                for name in index.names_of(street.id):
                    similarity = max(
                        street_similarity(parsed, name, self.settings.substring_similarity)
                        for parsed in parsed_names
                    )
                    score = similarity + bonus
                    if score <= self.settings.parsed_street_min_score:
                        continue
                    if best is None or (-score, distance, street.id) < (-best[0], best[1], best[2]):
                        best = (score, distance, street.id, street)
            if best is not None:
                logger.debug(
                    f"Listing {listing.id}: street {best[3].id} by parsed name {parsed_names} "
                    f"(score {best[0]:.2f})"
                )
                return best[3]
        return None

    def _nearest_street(
        self, point: tuple[float, float], geo_id: Optional[int]
    ) -> Optional[Street]:
        for radius in self.settings.street_radius_steps:
            street = self.snapshot.street_index.nearest(point[0], point[1], geo_id, radius)
            if street is not None:
                return street
        return None
