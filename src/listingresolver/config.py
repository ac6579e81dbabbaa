"""Configuration system for listing-resolver.

Uses pydantic-settings to load configuration from environment variables
and .env files. Every radius and similarity threshold used by the
resolution pipeline and the offline complex linkage lives here so it can
be tuned without touching the matching code.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variables are prefixed with LISTINGRES_
    (e.g., LISTINGRES_MERGE_RADIUS_M=300).
    """

    model_config = SettingsConfigDict(
        env_prefix="LISTINGRES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Street search
    street_radius_steps: list[int] = Field(
        default=[200, 500, 5000],
        description=(
            "Nearest-street search radii in meters, tried in order. "
            "Dense city districts resolve within the first step, villages "
            "often need the last one."
        ),
    )
    min_text_name_length: int = Field(
        default=3,
        ge=1,
        description="Shortest normalized street name searched for in listing text",
    )
    text_street_max_distance_m: float = Field(
        default=1000.0,
        gt=0,
        description=(
            "A street named in text but owned outside the listing's geo node "
            "is only accepted this close to the listing point"
        ),
    )
    parsed_street_radius_m: float = Field(
        default=500.0,
        gt=0,
        description="Radius of nearby streets compared with a street name parsed from text",
    )
    parsed_street_min_score: float = Field(
        default=0.7,
        ge=0,
        description="A parsed street name matches when similarity plus distance bonus exceeds this",
    )
    parsed_street_distance_bonus: float = Field(
        default=0.1,
        ge=0,
        le=1,
        description="Bonus for a street at the listing point, falling linearly to 0 at the radius",
    )

    # Offline complex linkage (CSV export x OSM polygons)
    merge_radius_m: float = Field(
        default=500.0,
        gt=0,
        description="Max distance between a CSV complex and an OSM candidate",
    )
    merge_distance_penalty: float = Field(
        default=0.2,
        ge=0,
        le=1,
        description="Score penalty at the edge of the merge radius (linear)",
    )
    merge_accept_score: float = Field(
        default=0.5,
        ge=0,
        le=1,
        description="A CSV/OSM pair merges only when its score is strictly above this",
    )
    substring_similarity: float = Field(
        default=0.9,
        ge=0,
        le=1,
        description="Name similarity when one normalized name contains the other",
    )
    jaccard_min_word_length: int = Field(
        default=3,
        ge=1,
        description="Words shorter than this are ignored by the Jaccard word overlap",
    )

    # Per-listing complex resolution
    complex_fuzzy_threshold: float = Field(
        default=0.9,
        ge=0,
        le=1,
        description="Minimum name similarity for a fuzzy complex-name hit",
    )
    complex_name_min_length: int = Field(
        default=3,
        ge=1,
        description="Shortest complex name accepted after a trigger keyword",
    )
    complex_name_max_length: int = Field(
        default=35,
        ge=1,
        description="Longest complex name accepted after a trigger keyword",
    )
    complex_fuzzy_min_length: int = Field(
        default=4,
        ge=1,
        description="Names shorter than this are only matched exactly, never by similarity",
    )
    complex_nearest_radius_m: float = Field(
        default=100.0,
        ge=0,
        description=(
            "Without a containing footprint, a complex centroid this close to "
            "the listing point is taken"
        ),
    )

    # Batch processing
    batch_size: int = Field(default=500, ge=1, description="Listings per batch")
    max_workers: int = Field(default=4, ge=1, description="Resolution worker threads")
    store_max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries of a whole batch write after a transient store failure",
    )
    store_retry_delay: float = Field(
        default=1.0,
        ge=0,
        description="Seconds between batch write retries (multiplied by attempt)",
    )

    # OSM Overpass
    overpass_urls: list[str] = Field(
        default=[
            "https://overpass-api.de/api/interpreter",
            "https://lz4.overpass-api.de/api/interpreter",
            "https://z.overpass-api.de/api/interpreter",
        ],
        description="Overpass endpoints, tried in order until one answers",
    )
    overpass_timeout: float = Field(
        default=180.0,
        gt=0,
        description="HTTP timeout for one Overpass request (seconds)",
    )
    overpass_retries: int = Field(
        default=2,
        ge=0,
        description="Retries per Overpass server on timeout, 429 or 5xx",
    )
    overpass_retry_delay: float = Field(
        default=2.0,
        ge=0,
        description="Base delay between Overpass retries (seconds)",
    )

    # Data paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for complex exports and the listing database",
    )


# Singleton instance for easy import
config = Settings()
