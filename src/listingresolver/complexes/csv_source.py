"""Reader for the curated residential complex CSV export.

Expected header: ``name_ru,name_uk,name_en,lat,lng``. The Ukrainian name
falls back to the Russian one; rows without usable coordinates are
skipped.
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, Iterator, Union

from ..models.listing import is_valid_point
from ..models.reference import ComplexRecord, LocalizedName

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("name_ru", "name_uk", "name_en", "lat", "lng")


def _parse_float(value: object) -> float | None:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def parse_complex_rows(rows: Iterable[dict[str, str]]) -> Iterator[ComplexRecord]:
    """Turn CSV dict rows into records, skipping unusable rows."""
    skipped = 0
    for line_no, row in enumerate(rows, start=2):
        ru = (row.get("name_ru") or "").strip()
        uk = (row.get("name_uk") or "").strip() or ru
        en = (row.get("name_en") or "").strip()
        lat = _parse_float(row.get("lat"))
        lng = _parse_float(row.get("lng"))

        if not (ru or uk or en):
            logger.warning(f"Complex CSV line {line_no}: no name, skipped")
            skipped += 1
            continue
        if not is_valid_point(lat, lng):
            logger.warning(f"Complex CSV line {line_no} ({uk or ru}): invalid coordinates, skipped")
            skipped += 1
            continue

        yield ComplexRecord(
            name=LocalizedName(uk=uk or None, ru=ru or None, en=en or None),
            lat=lat,
            lng=lng,
        )

    if skipped:
        logger.info(f"Complex CSV: {skipped} rows skipped")


def read_complex_csv(path: Union[str, Path]) -> list[ComplexRecord]:
    """Read the complex export.

    Args:
        path: CSV file with a ``name_ru,name_uk,name_en,lat,lng`` header

    Returns:
        Records in file order
    """
    path = Path(path)
    with path.open(newline="", encoding="utf-8-sig") as f:
        records = list(parse_complex_rows(csv.DictReader(f)))
    logger.info(f"Read {len(records)} complexes from {path}")
    return records
