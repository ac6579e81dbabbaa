"""Listing and resolution-result data models."""

import json
import math
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

ListingText = Union[str, dict[str, str], None]


class ResolutionMethod(str, Enum):
    """Audit tag recording how a resolved field was obtained."""

    GEO_CONTAINS = "geo_contains"
    STREET_NEAREST = "street_nearest"
    STREET_TEXT_TITLE = "street_text_title"
    STREET_TEXT_DESCRIPTION = "street_text_description"
    STREET_TEXT_PARSED = "street_text_parsed"
    COMPLEX_TEXT = "complex_text"
    COMPLEX_CONTAINS = "complex_contains"
    COMPLEX_FUZZY = "complex_fuzzy"
    COMPLEX_NEAREST = "complex_nearest"


class ResolutionState(str, Enum):
    """Where a listing stands in the resolution state machine."""

    UNRESOLVED = "unresolved"
    GEO_RESOLVED = "geo_resolved"
    STREET_RESOLVED = "street_resolved"
    COMPLETE = "complete"


def _text_of(value: ListingText) -> str:
    if not value:
        return ""
    if isinstance(value, dict):
        return " ".join(v for v in value.values() if v)
    return value


def is_valid_point(lat: Optional[float], lng: Optional[float]) -> bool:
    """Check that coordinates are present, finite and inside WGS84 bounds.

    (0, 0) is treated as missing: sources emit it for "no coordinates".
    """
    if lat is None or lng is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return False
    return not (lat == 0 and lng == 0)


class Listing(BaseModel):
    """Real estate listing as supplied by the ingestion collaborator.

    ``title`` and ``description`` are either plain text or a mapping of
    language code to text. A JSON object string (``{"uk": ..., "ru": ...}``)
    is decoded into such a mapping.
    """

    id: str = Field(..., description="Unique listing identifier")
    lat: Optional[float] = Field(default=None, description="Latitude")
    lng: Optional[float] = Field(default=None, description="Longitude")
    title: ListingText = Field(default=None, description="Listing title")
    description: ListingText = Field(default=None, description="Listing description")

    # Resolution outputs, each set at most once
    geo_id: Optional[int] = Field(default=None, description="Resolved geo node")
    street_id: Optional[int] = Field(default=None, description="Resolved street")
    complex_id: Optional[int] = Field(default=None, description="Resolved complex")
    resolution_methods: list[ResolutionMethod] = Field(
        default_factory=list, description="How each resolved field was obtained"
    )

    model_config = {
        "str_strip_whitespace": True,
    }

    @field_validator("title", "description", mode="before")
    @classmethod
    def _decode_multilingual(cls, value):
        if isinstance(value, str) and value.lstrip().startswith("{"):
            try:
                parsed = json.loads(value)
            except ValueError:
                return value
            if isinstance(parsed, dict):
                return {str(k): str(v) for k, v in parsed.items() if v}
        return value

    @property
    def title_text(self) -> str:
        return _text_of(self.title)

    @property
    def description_text(self) -> str:
        return _text_of(self.description)

    def point(self) -> Optional[tuple[float, float]]:
        """(lat, lng) when the coordinates are usable, else None."""
        if is_valid_point(self.lat, self.lng):
            return (self.lat, self.lng)
        return None

    def apply(self, update: "ListingUpdate") -> "Listing":
        """Return a copy with the update applied as fill-if-null.

        Non-null fields are never overwritten and method tags are never
        duplicated, so applying the same update twice is a no-op.
        """
        changes: dict = {}
        for field_name in ("geo_id", "street_id", "complex_id"):
            new_value = getattr(update, field_name)
            if new_value is not None and getattr(self, field_name) is None:
                changes[field_name] = new_value
        methods = list(self.resolution_methods)
        for method in update.resolution_methods:
            if method not in methods:
                methods.append(method)
        if methods != self.resolution_methods:
            changes["resolution_methods"] = methods
        if not changes:
            return self
        return self.model_copy(update=changes)


class ListingUpdate(BaseModel):
    """Partial update emitted by the pipeline for one listing.

    Only fields that were null on the input listing and got resolved are
    set. The persistence collaborator applies it with "set only if currently
    null" semantics.
    """

    listing_id: str
    geo_id: Optional[int] = None
    street_id: Optional[int] = None
    complex_id: Optional[int] = None
    resolution_methods: list[ResolutionMethod] = Field(default_factory=list)
    state: ResolutionState = ResolutionState.UNRESOLVED

    @property
    def is_empty(self) -> bool:
        return self.geo_id is None and self.street_id is None and self.complex_id is None
