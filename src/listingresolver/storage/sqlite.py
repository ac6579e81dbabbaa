"""SQLite-based listing store.

Reference implementation of ``ListingStore``: listings and their resolved
references live in one table, updates are applied with ``COALESCE`` so a
stored value is never replaced, and batches are read by primary-key
cursor so concurrent writes never shift a batch boundary.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from ..config import config
from ..errors import TransientStoreError
from ..models.listing import Listing, ListingUpdate, ResolutionMethod
from .base import ListingStore

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "listings.db"


class SQLiteListingStore(ListingStore):
    """SQLite-backed listing store.

    Example:
        store = SQLiteListingStore(Path("data"))

        # Load listings from the ingestion side
        store.save_batch(listings)

        # Resolve and write back
        for batch in store.iter_batches(500):
            store.apply_updates(pipeline.resolve_many(batch))
    """

    name = "sqlite"

    def __init__(
        self,
        db_dir: Optional[Union[str, Path]] = None,
        db_name: str = DEFAULT_DB_NAME,
        timeout: float = 30.0,
    ):
        """Initialize the store.

        Args:
            db_dir: Directory for the database file. Defaults to the
                    configured data directory.
            db_name: Name of the SQLite database file
            timeout: Seconds to wait for a lock held by another writer
        """
        self.db_dir = Path(db_dir) if db_dir else config.data_dir
        self.db_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = self.db_dir / db_name
        self.timeout = timeout

        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=self.timeout)

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS listings (
                    id TEXT PRIMARY KEY,
                    lat REAL,
                    lng REAL,
                    title TEXT,
                    description TEXT,
                    geo_id INTEGER,
                    street_id INTEGER,
                    complex_id INTEGER,
                    resolution_methods JSON NOT NULL DEFAULT '[]'
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_street ON listings(street_id)"
            )
            conn.commit()

    @staticmethod
    def _serialize_text(value) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)

    @staticmethod
    def _row_to_listing(row: sqlite3.Row) -> Listing:
        return Listing(
            id=row["id"],
            lat=row["lat"],
            lng=row["lng"],
            title=row["title"],
            description=row["description"],
            geo_id=row["geo_id"],
            street_id=row["street_id"],
            complex_id=row["complex_id"],
            resolution_methods=json.loads(row["resolution_methods"] or "[]"),
        )

    # =========================================================================
    # Ingestion side
    # =========================================================================

    def save_batch(self, listings: Iterable[Listing]) -> int:
        """Insert or replace listings, resolved fields included.

        Args:
            listings: Listings to store

        Returns:
            Number of listings saved
        """
        rows = [
            (
                listing.id,
                listing.lat,
                listing.lng,
                self._serialize_text(listing.title),
                self._serialize_text(listing.description),
                listing.geo_id,
                listing.street_id,
                listing.complex_id,
                json.dumps([m.value for m in listing.resolution_methods]),
            )
            for listing in listings
        ]
        if not rows:
            return 0

        with self._connect() as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO listings
                (id, lat, lng, title, description, geo_id, street_id, complex_id,
                 resolution_methods)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            conn.commit()

        logger.info(f"Stored {len(rows)} listings")
        return len(rows)

    def get(self, listing_id: str) -> Optional[Listing]:
        """Get a single listing by ID."""
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return self._row_to_listing(row) if row else None

    def count(self, only_unresolved: bool = False) -> int:
        """Count stored listings, optionally only those without a street."""
        where = "WHERE street_id IS NULL" if only_unresolved else ""
        with self._connect() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM listings {where}").fetchone()[0]

    # =========================================================================
    # ListingStore
    # =========================================================================

    def iter_batches(
        self, batch_size: int, only_unresolved: bool = True
    ) -> Iterator[list[Listing]]:
        last_id = ""
        condition = "AND street_id IS NULL" if only_unresolved else ""

        while True:
            with self._connect() as conn:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(
                    f"""
                    SELECT * FROM listings
                    WHERE id > ? {condition}
                    ORDER BY id
                    LIMIT ?
                    """,
                    (last_id, batch_size),
                ).fetchall()
            if not rows:
                return
            last_id = rows[-1]["id"]
            yield [self._row_to_listing(row) for row in rows]

    def apply_updates(self, updates: list[ListingUpdate]) -> int:
        updates = [u for u in updates if not u.is_empty or u.resolution_methods]
        if not updates:
            return 0

        changed = 0
        try:
            with self._connect() as conn:
                for update in updates:
                    row = conn.execute(
                        "SELECT resolution_methods FROM listings WHERE id = ?",
                        (update.listing_id,),
                    ).fetchone()
                    if row is None:
                        logger.warning(f"Update for unknown listing {update.listing_id} ignored")
                        continue

                    methods = [ResolutionMethod(m) for m in json.loads(row[0] or "[]")]
                    for method in update.resolution_methods:
                        if method not in methods:
                            methods.append(method)

                    cursor = conn.execute(
                        """
                        UPDATE listings SET
                            geo_id = COALESCE(geo_id, ?),
                            street_id = COALESCE(street_id, ?),
                            complex_id = COALESCE(complex_id, ?),
                            resolution_methods = ?
                        WHERE id = ?
                          AND (
                            (geo_id IS NULL AND ? IS NOT NULL)
                            OR (street_id IS NULL AND ? IS NOT NULL)
                            OR (complex_id IS NULL AND ? IS NOT NULL)
                            OR resolution_methods != ?
                          )
                        """,
                        (
                            update.geo_id,
                            update.street_id,
                            update.complex_id,
                            json.dumps([m.value for m in methods]),
                            update.listing_id,
                            update.geo_id,
                            update.street_id,
                            update.complex_id,
                            json.dumps([m.value for m in methods]),
                        ),
                    )
                    changed += cursor.rowcount
                conn.commit()
        except sqlite3.OperationalError as e:
            # Locked or busy database; the whole batch can be retried
            raise TransientStoreError(str(e), store=self.name) from e

        logger.debug(f"Applied {len(updates)} updates, {changed} listings changed")
        return changed
