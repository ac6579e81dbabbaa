"""Abstract base class for listing persistence.

The resolution core never talks to a database directly. A store hands out
listings in non-overlapping batches and applies ``ListingUpdate`` objects
with "set only if currently null" semantics, which makes retried or
overlapping writes harmless.

Example usage:
    class MyStore(ListingStore):
        name = "my_store"

        def iter_batches(self, batch_size, only_unresolved=True):
            # Yield lists of Listing ordered by primary key
            pass

        def apply_updates(self, updates):
            # Fill-if-null write, raise TransientStoreError on retryable failure
            pass
"""

from abc import ABC, abstractmethod
from typing import Iterator

from ..models.listing import Listing, ListingUpdate


class ListingStore(ABC):
    """Abstract persistence collaborator for listings.

    Attributes:
        name: Identifier used in log messages and errors
    """

    name: str = "store"

    @abstractmethod
    def iter_batches(
        self, batch_size: int, only_unresolved: bool = True
    ) -> Iterator[list[Listing]]:
        """Yield listings in fixed-size batches by primary-key cursor.

        Args:
            batch_size: Listings per batch
            only_unresolved: Skip listings whose street is already resolved

        Returns:
            Iterator of non-empty batches, each ordered by primary key
        """
        pass

    @abstractmethod
    def apply_updates(self, updates: list[ListingUpdate]) -> int:
        """Persist updates with fill-if-null semantics.

        A non-null stored field is never overwritten and a method tag is
        never stored twice, so applying the same updates again is a no-op.

        Args:
            updates: Partial updates emitted by the pipeline

        Returns:
            Number of listings that changed

        Raises:
            TransientStoreError: If the write failed and may succeed on retry
        """
        pass
