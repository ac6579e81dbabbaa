"""Reference data models: geography, streets and apartment complexes.

These are produced by import collaborators (geography/street imports, the
offline complex linkage) and are read-only while listings are resolved.
Geometries are kept as GeoJSON mappings with (lng, lat) coordinate order;
the spatial indexes turn them into shapely objects.
"""

from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, Field, model_validator


class GeoType(str, Enum):
    """Levels of the geographic hierarchy."""

    COUNTRY = "country"
    REGION = "region"
    REGION_DISTRICT = "region_district"
    CITY = "city"
    CITY_DISTRICT = "city_district"
    VILLAGE = "village"


class ComplexSource(str, Enum):
    """Provenance of an apartment complex record."""

    CSV_IMPORT = "csv-import"
    OSM = "osm"
    MERGED = "merged"


class LocalizedName(BaseModel):
    """A name in the languages listings arrive in."""

    uk: Optional[str] = None
    ru: Optional[str] = None
    en: Optional[str] = None

    model_config = {
        "str_strip_whitespace": True,
        "frozen": True,
    }

    def variants(self) -> list[str]:
        """Non-empty names, Ukrainian first, without duplicates."""
        seen: list[str] = []
        for value in (self.uk, self.ru, self.en):
            if value and value not in seen:
                seen.append(value)
        return seen

    def display(self) -> str:
        """Best single name for log messages."""
        variants = self.variants()
        return variants[0] if variants else ""


class GeoNode(BaseModel):
    """Node of the nested-set geographic tree.

    Descendants of a node have bounds strictly inside its (left, right)
    interval, so ancestor/descendant checks need no recursion.
    """

    id: int = Field(..., description="Geo node identifier")
    parent_id: Optional[int] = Field(default=None, description="Parent node, None for roots")
    type: GeoType = Field(..., description="Hierarchy level")
    name: LocalizedName = Field(default_factory=LocalizedName)
    left: int = Field(..., ge=0, description="Nested-set left bound")
    right: int = Field(..., ge=0, description="Nested-set right bound")
    geometry: Optional[dict[str, Any]] = Field(
        default=None, description="GeoJSON Polygon or MultiPolygon"
    )

    model_config = {
        "frozen": True,
    }

    @model_validator(mode="after")
    def _check_bounds(self) -> "GeoNode":
        if self.left >= self.right:
            raise ValueError(
                f"nested-set bounds must satisfy left < right, got ({self.left}, {self.right})"
            )
        return self

    def is_ancestor_of(self, other: "GeoNode") -> bool:
        return self.left < other.left and other.right < self.right


class Street(BaseModel):
    """A street with its current and historical names.

    ``names`` holds the ordered name history per language; index 0 is the
    current name and the rest are names the street had before renaming.
    """

    id: int = Field(..., description="Street identifier")
    geo_id: Optional[int] = Field(default=None, description="Owning geo node")
    name: LocalizedName = Field(default_factory=LocalizedName)
    names: dict[str, list[str]] = Field(
        default_factory=dict, description="Name history per language, current first"
    )
    geometry: Optional[dict[str, Any]] = Field(
        default=None, description="GeoJSON LineString or MultiLineString"
    )

    model_config = {
        "frozen": True,
    }

    def name_variants(self) -> Iterator[str]:
        """Current names followed by every historical variant."""
        seen: set[str] = set()
        for value in self.name.variants():
            seen.add(value)
            yield value
        for history in self.names.values():
            for value in history:
                if value and value not in seen:
                    seen.add(value)
                    yield value

    def historical_names(self) -> list[str]:
        """Names the street no longer carries."""
        current = set(self.name.variants())
        old: list[str] = []
        for history in self.names.values():
            if history:
                current.add(history[0])
        for history in self.names.values():
            for value in history[1:]:
                if value and value not in current and value not in old:
                    old.append(value)
        return old


class ApartmentComplex(BaseModel):
    """Residential complex from the linked CSV/OSM complex table."""

    id: int = Field(..., description="Complex identifier")
    name: LocalizedName = Field(default_factory=LocalizedName)
    lat: float = Field(..., ge=-90, le=90, description="Centroid latitude")
    lng: float = Field(..., ge=-180, le=180, description="Centroid longitude")
    geometry: Optional[dict[str, Any]] = Field(
        default=None, description="GeoJSON Polygon footprint"
    )
    geo_id: Optional[int] = Field(default=None, description="Resolved geo node")
    street_id: Optional[int] = Field(default=None, description="Resolved street")
    source: ComplexSource = Field(..., description="Provenance of the record")
    osm_id: Optional[int] = Field(default=None, description="OSM element id")
    osm_type: Optional[str] = Field(default=None, description="OSM element type")

    model_config = {
        "frozen": True,
    }


class ComplexRecord(BaseModel):
    """Raw complex row from the curated CSV export."""

    name: LocalizedName
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    model_config = {
        "frozen": True,
    }


class OsmFeature(BaseModel):
    """Named OSM building/landuse element with its outer ring."""

    osm_id: int
    osm_type: str = "way"
    tags: dict[str, str] = Field(default_factory=dict)
    ring: list[tuple[float, float]] = Field(
        default_factory=list, description="Closed outer ring as (lng, lat) pairs"
    )
    lat: Optional[float] = None
    lng: Optional[float] = None

    model_config = {
        "frozen": True,
    }

    @property
    def name(self) -> LocalizedName:
        base = self.tags.get("name")
        return LocalizedName(
            uk=self.tags.get("name:uk") or base,
            ru=self.tags.get("name:ru") or base,
            en=self.tags.get("name:en"),
        )

    def polygon(self) -> Optional[dict[str, Any]]:
        """Footprint as a GeoJSON Polygon, None for point-only elements."""
        if len(self.ring) < 4:
            return None
        return {"type": "Polygon", "coordinates": [[list(p) for p in self.ring]]}
