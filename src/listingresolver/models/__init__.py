"""Data models for listing-resolver."""

from listingresolver.models.listing import (
    Listing,
    ListingUpdate,
    ResolutionMethod,
    ResolutionState,
    is_valid_point,
)
from listingresolver.models.reference import (
    ApartmentComplex,
    ComplexRecord,
    ComplexSource,
    GeoNode,
    GeoType,
    LocalizedName,
    OsmFeature,
    Street,
)

__all__ = [
    "ApartmentComplex",
    "ComplexRecord",
    "ComplexSource",
    "GeoNode",
    "GeoType",
    "Listing",
    "ListingUpdate",
    "LocalizedName",
    "OsmFeature",
    "ResolutionMethod",
    "ResolutionState",
    "Street",
    "is_valid_point",
]
