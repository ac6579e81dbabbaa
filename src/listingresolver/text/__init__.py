"""Name normalization and free-text name matching."""

from .matcher import find_in_text, iter_matches, name_in_text, order_candidates
from .normalizer import fold_diacritics, normalize, normalize_text
from .street_parser import extract_street_names, street_similarity

__all__ = [
    "extract_street_names",
    "find_in_text",
    "fold_diacritics",
    "iter_matches",
    "name_in_text",
    "normalize",
    "normalize_text",
    "order_candidates",
    "street_similarity",
]
