"""Listing resolution: reference snapshot, per-listing state machine and batch runner."""

from .batch import BatchReport, BatchRunner, chunked
from .resolver import ResolutionPipeline, resolution_state
from .snapshot import ReferenceSnapshot

__all__ = [
    "BatchReport",
    "BatchRunner",
    "ReferenceSnapshot",
    "ResolutionPipeline",
    "chunked",
    "resolution_state",
]
