"""Residential complexes: offline linkage of CSV/OSM sources and per-listing resolution."""

from .csv_source import read_complex_csv
from .extractor import ComplexNameExtractor, extract_candidates, is_blacklisted
from .index import ComplexIndex
from .linkage import ComplexLinker, name_similarity, string_similarity, word_similarity
from .osm import OverpassClient, build_query, parse_elements
from .resolver import ComplexMatch, ComplexResolver, enrich_complexes

__all__ = [
    "ComplexIndex",
    "ComplexLinker",
    "ComplexMatch",
    "ComplexNameExtractor",
    "ComplexResolver",
    "OverpassClient",
    "build_query",
    "enrich_complexes",
    "extract_candidates",
    "is_blacklisted",
    "name_similarity",
    "parse_elements",
    "read_complex_csv",
    "string_similarity",
    "word_similarity",
]
