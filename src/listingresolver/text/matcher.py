"""Find known normalized names inside listing free text."""

import logging
import re
from functools import lru_cache
from typing import Iterable, Iterator, Optional

from .normalizer import normalize_text

logger = logging.getLogger(__name__)

DEFAULT_MIN_NAME_LENGTH = 3


@lru_cache(maxsize=65536)
def _name_pattern(name: str) -> re.Pattern:
    # Starts a word; may be followed by a digit ("шевченка12") or punctuation, not a letter
    return re.compile(rf"(?<!\w){re.escape(name)}(?![^\W\d_])")


def order_candidates(names: Iterable[str], min_length: int = DEFAULT_MIN_NAME_LENGTH) -> list[str]:
    """Longest first, so a short name never wins inside a longer one.

    Names shorter than ``min_length`` are dropped; equal lengths are ordered
    alphabetically to keep the scan deterministic.
    """
    unique = {n for n in names if n and len(n) >= min_length}
    return sorted(unique, key=lambda n: (-len(n), n))


def name_in_text(name: str, normalized_text: str) -> bool:
    """Check one normalized name against already-normalized text.

    The name must sit on word boundaries: "франка" is found in
    "вул. франка, 4" and "франка12" but not in "франківська".
    """
    if not name or not normalized_text or name not in normalized_text:
        return False
    return _name_pattern(name).search(normalized_text) is not None


def iter_matches(
    candidate_names: Iterable[str],
    text: Optional[str],
    min_length: int = DEFAULT_MIN_NAME_LENGTH,
) -> Iterator[str]:
    """Every candidate name found in ``text``, longest first."""
    normalized = normalize_text(text)
    if not normalized:
        return
    for name in order_candidates(candidate_names, min_length):
        if name_in_text(name, normalized):
            yield name


def find_in_text(
    candidate_names: Iterable[str],
    text: Optional[str],
    min_length: int = DEFAULT_MIN_NAME_LENGTH,
) -> Optional[str]:
    """Return the first candidate name found in ``text``.

    The text gets the character-level normalization only. Candidates are
    tried longest first; callers decide which candidate set to search first
    (e.g. streets of the listing's own geo node before a global index).

    Args:
        candidate_names: Normalized names to look for
        text: Raw listing text (title or description)
        min_length: Shortest name considered

    Returns:
        The matched normalized name, or None
    """
    name = next(iter_matches(candidate_names, text, min_length), None)
    if name is not None:
        logger.debug(f"Text match: '{name}'")
    return name
