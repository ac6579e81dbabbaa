"""Worker pool that resolves listings in fixed-size batches.

Batches are resolved in worker threads against the shared snapshot and
written back one at a time by the calling thread. A failed write is
retried as a whole; the store's fill-if-null semantics make that safe.
"""

import logging
import threading
import time
from collections import Counter
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from itertools import islice
from typing import Iterable, Iterator, Optional

from ..config import Settings, config
from ..errors import TransientStoreError
from ..models.listing import Listing, ListingUpdate
from ..storage.base import ListingStore
from .resolver import ResolutionPipeline

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Counters of one batch run."""

    processed: int = 0
    updated: int = 0
    failed: int = 0
    batches: int = 0
    failed_batches: int = 0
    retries: int = 0
    stopped: bool = False
    methods: Counter = field(default_factory=Counter)

    def summary(self) -> str:
        methods = ", ".join(f"{m}={n}" for m, n in sorted(self.methods.items()))
        return (
            f"{self.processed} processed, {self.updated} updated, {self.failed} failed "
            f"in {self.batches} batches ({self.retries} retries)"
            + (f" [{methods}]" if methods else "")
        )


@dataclass
class _BatchResult:
    updates: list[ListingUpdate]
    processed: int
    failed: int


def chunked(listings: Iterable[Listing], size: int) -> Iterator[list[Listing]]:
    """Split listings into consecutive, non-overlapping batches."""
    iterator = iter(listings)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


class BatchRunner:
    """Resolve listings through a pipeline and persist them through a store.

    Example:
        runner = BatchRunner(pipeline, store)
        report = runner.run_store()
        print(report.summary())
    """

    def __init__(
        self,
        pipeline: ResolutionPipeline,
        store: ListingStore,
        batch_size: Optional[int] = None,
        max_workers: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the runner.

        Args:
            pipeline: Shared resolution pipeline
            store: Persistence collaborator
            batch_size: Listings per batch (default from settings)
            max_workers: Resolution threads (default from settings)
            max_retries: Retries of a batch write after TransientStoreError
            retry_delay: Base delay between write retries (seconds)
            settings: Settings override
        """
        settings = settings or config
        self.pipeline = pipeline
        self.store = store
        self.batch_size = batch_size or settings.batch_size
        self.max_workers = max_workers or settings.max_workers
        self.max_retries = settings.store_max_retries if max_retries is None else max_retries
        self.retry_delay = settings.store_retry_delay if retry_delay is None else retry_delay
        self._stop = threading.Event()

    def stop(self) -> None:
        """Stop submitting new batches; batches already running are finished and written."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # =========================================================================
    # Entry points
    # =========================================================================

    def run(self, listings: Iterable[Listing]) -> BatchReport:
        """Resolve and persist an in-memory listing collection."""
        return self._run(chunked(listings, self.batch_size))

    def run_store(self, only_unresolved: bool = True) -> BatchReport:
        """Resolve every listing the store hands out, batch by batch."""
        return self._run(self.store.iter_batches(self.batch_size, only_unresolved))

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolve_batch(self, batch: list[Listing]) -> _BatchResult:
        updates: list[ListingUpdate] = []
        failed = 0
        for listing in batch:
            try:
                update = self.pipeline.resolve(listing)
            except Exception as e:
                logger.error(f"Failed to resolve listing {listing.id}: {e}")
                failed += 1
                continue
            if not update.is_empty:
                updates.append(update)
        return _BatchResult(updates, len(batch), failed)

    def _write(self, updates: list[ListingUpdate], report: BatchReport) -> bool:
        if not updates:
            return True
        for attempt in range(self.max_retries + 1):
            try:
                report.updated += self.store.apply_updates(updates)
                return True
            except TransientStoreError as e:
                if attempt >= self.max_retries:
                    logger.error(f"Giving up on batch write after {attempt + 1} attempts: {e}")
                    return False
                report.retries += 1
                delay = self.retry_delay * (attempt + 1)
                logger.warning(
                    f"Batch write failed ({e}), retry {attempt + 1}/{self.max_retries} in {delay}s"
                )
                time.sleep(delay)
        return False

    def _record(self, result: _BatchResult, report: BatchReport) -> None:
        report.batches += 1
        report.processed += result.processed
        report.failed += result.failed
        if self._write(result.updates, report):
            for update in result.updates:
                report.methods.update(m.value for m in update.resolution_methods)
        else:
            report.failed_batches += 1
        logger.info(
            f"Batch {report.batches}: {result.processed} listings, "
            f"{len(result.updates)} updates, {result.failed} failed"
        )

    def _run(self, batches: Iterable[list[Listing]]) -> BatchReport:
        report = BatchReport()
        batch_iter = iter(batches)
        pending: set[Future] = set()
        exhausted = False

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            while True:
                while not exhausted and not self._stop.is_set() and len(pending) < self.max_workers:
                    batch = next(batch_iter, None)
                    if batch is None:
                        exhausted = True
                        break
                    pending.add(executor.submit(self._resolve_batch, batch))

                if not pending:
                    break

                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    self._record(future.result(), report)

        report.stopped = self._stop.is_set() and not exhausted
        logger.info(f"Batch run {'stopped' if report.stopped else 'finished'}: {report.summary()}")
        return report
