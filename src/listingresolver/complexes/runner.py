"""CLI runner for the offline apartment complex table build.

Run via: python -m listingresolver.complexes.runner --csv complexes.csv --region odesa

Reads the curated CSV export, fetches named building/residential polygons
from Overpass for each bounding box, links the two sources and writes the
complex table as JSON lines (one ``ApartmentComplex`` per line).
"""

import argparse
import asyncio
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import Settings, config
from ..errors import OverpassError
from ..models.reference import ApartmentComplex, ComplexRecord, OsmFeature
from .csv_source import read_complex_csv
from .linkage import ComplexLinker
from .osm import BBox, OverpassClient, parse_elements

console = Console()
logger = logging.getLogger(__name__)

# Bounding boxes (south, west, north, east) of the supported cities
REGIONS: dict[str, BBox] = {
    "odesa": (46.3, 30.4, 46.8, 31.1),
    "kyiv": (50.2, 30.2, 50.65, 31.0),
    "kharkiv": (49.85, 36.05, 50.15, 36.45),
    "dnipro": (48.35, 34.85, 48.55, 35.2),
    "lviv": (49.75, 23.85, 49.95, 24.15),
    "zaporizhzhia": (47.75, 35.0, 47.95, 35.25),
    "kryvyi_rih": (47.85, 33.25, 48.05, 33.55),
    "mykolaiv": (46.9, 31.9, 47.05, 32.1),
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def parse_bbox(value: str) -> BBox:
    """Parse ``S,W,N,E`` into a bounding box tuple."""
    try:
        south, west, north, east = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"bbox must be S,W,N,E, got '{value}'")
    if south >= north or west >= east:
        raise argparse.ArgumentTypeError(f"bbox must satisfy S<N and W<E, got '{value}'")
    return (south, west, north, east)


def in_any_bbox(lat: float, lng: float, bboxes: Sequence[BBox]) -> bool:
    return any(s <= lat <= n and w <= lng <= e for s, w, n, e in bboxes)


async def fetch_all_features(
    bboxes: Sequence[BBox],
    settings: Optional[Settings] = None,
    client: Optional[OverpassClient] = None,
) -> list[OsmFeature]:
    """Fetch features for every bounding box, deduplicated by OSM element.

    A bounding box whose query fails on every server is logged and skipped.
    """
    settings = settings or config
    features: dict[tuple[str, int], OsmFeature] = {}

    async with (client or OverpassClient(settings)) as overpass:
        for bbox in bboxes:
            try:
                found = await overpass.fetch_features(bbox)
            except OverpassError as e:
                logger.error(f"Skipping bbox {bbox}: {e}")
                continue
            for feature in found:
                features.setdefault((feature.osm_type, feature.osm_id), feature)
            console.print(f"  bbox {bbox}: {len(found)} OSM features")

    return list(features.values())


def build_complex_table(
    records: Iterable[ComplexRecord],
    features: Iterable[OsmFeature],
    bboxes: Sequence[BBox] = (),
    settings: Optional[Settings] = None,
) -> list[ApartmentComplex]:
    """Link CSV records with OSM features into the complex table.

    When bounding boxes are given, CSV records outside all of them are left
    out so the table covers the same area as the OSM data.
    """
    records = list(records)
    if bboxes:
        inside = [r for r in records if in_any_bbox(r.lat, r.lng, bboxes)]
        logger.info(f"{len(inside)} of {len(records)} CSV complexes inside the requested area")
        records = inside
    return ComplexLinker(settings).link(records, features)


def write_complex_table(complexes: Iterable[ApartmentComplex], path: Union[str, Path]) -> int:
    """Write complexes as JSON lines. Returns the number written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8") as f:
        for complex_ in complexes:
            f.write(complex_.model_dump_json(exclude_none=True) + "\n")
            count += 1
    return count


def read_complex_table(path: Union[str, Path]) -> list[ApartmentComplex]:
    """Read a complex table written by ``write_complex_table``."""
    complexes = []
    with Path(path).open(encoding="utf-8") as f:
        for line in f:
            if line.strip():
                complexes.append(ApartmentComplex.model_validate_json(line))
    return complexes


def print_summary(complexes: Sequence[ApartmentComplex]) -> None:
    by_source = Counter(c.source.value for c in complexes)
    table = Table(title="Complex table")
    table.add_column("Source")
    table.add_column("Complexes", justify="right")
    table.add_column("With footprint", justify="right")
    for source in sorted(by_source):
        with_polygon = sum(1 for c in complexes if c.source.value == source and c.geometry)
        table.add_row(source, str(by_source[source]), str(with_polygon))
    table.add_row("[bold]total[/bold]", str(len(complexes)), str(sum(1 for c in complexes if c.geometry)))
    console.print(table)


async def run_build(
    csv_path: Optional[Path],
    bboxes: Sequence[BBox],
    output: Path,
    osm_json: Optional[Path] = None,
    settings: Optional[Settings] = None,
) -> int:
    """Build and write the complex table.

    Args:
        csv_path: Curated CSV export, or None for OSM only
        bboxes: Areas to query Overpass for
        output: JSONL output path
        osm_json: Saved Overpass response to use instead of querying
        settings: Settings override

    Returns:
        Number of complexes written
    """
    records: list[ComplexRecord] = []
    if csv_path is not None:
        if csv_path.exists():
            records = read_complex_csv(csv_path)
        else:
            console.print(f"[yellow]CSV not found at {csv_path}, using OSM data only[/yellow]")

    if osm_json is not None:
        data = json.loads(osm_json.read_text(encoding="utf-8"))
        features = parse_elements(data.get("elements", []))
        console.print(f"Loaded {len(features)} OSM features from {osm_json}")
    elif bboxes:
        console.print(f"[bold]Querying Overpass for {len(bboxes)} areas...[/bold]")
        features = await fetch_all_features(bboxes, settings)
    else:
        features = []

    complexes = build_complex_table(records, features, bboxes, settings)
    written = write_complex_table(complexes, output)
    print_summary(complexes)
    console.print(f"Saved {written} complexes to {output}")
    return written


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Build the apartment complex table from the CSV export and OSM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m listingresolver.complexes.runner --csv complexes.csv --region odesa
  python -m listingresolver.complexes.runner --csv complexes.csv --bbox 46.3,30.4,46.8,31.1
  python -m listingresolver.complexes.runner --csv complexes.csv --osm-json odesa.json -v

Regions: """ + ", ".join(REGIONS),
    )

    parser.add_argument("--csv", type=Path, help="Curated complex CSV export")
    parser.add_argument(
        "--bbox",
        type=parse_bbox,
        action="append",
        default=[],
        help="Area to query as S,W,N,E (repeatable)",
    )
    parser.add_argument(
        "--region",
        choices=sorted(REGIONS),
        action="append",
        default=[],
        help="Predefined city area (repeatable)",
    )
    parser.add_argument("--osm-json", type=Path, help="Saved Overpass JSON response")
    parser.add_argument(
        "--output",
        type=Path,
        default=config.data_dir / "apartment_complexes.jsonl",
        help="Output JSONL file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    bboxes = list(args.bbox) + [REGIONS[name] for name in args.region]
    if args.csv is None and not bboxes and args.osm_json is None:
        parser.error("nothing to build: pass --csv, --bbox/--region or --osm-json")

    try:
        asyncio.run(run_build(args.csv, bboxes, args.output, args.osm_json))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
