"""Persistence collaborators for listings and their resolved references."""

from .base import ListingStore
from .sqlite import SQLiteListingStore

__all__ = ["ListingStore", "SQLiteListingStore"]
