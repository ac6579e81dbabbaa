"""Pull a street name out of free text by the street-type word before it.

Listings often spell the street slightly differently from the reference
data ("вул. Конатна", "ул. Дерибасовськая"), so an exact name scan misses
them. Here the words following a street-type abbreviation are taken as the
name and compared with the names of nearby streets by edit distance.
"""

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

from .normalizer import normalize, normalize_text

# Street-type words that introduce a name; longer forms first
STREET_TYPE_WORDS = (
    "вулиця", "вул", "улица", "ул",
    "проспект", "просп", "пр-т", "пр",
    "провулок", "пров", "переулок", "пер",
    "бульвар", "бульв", "б-р",
    "площа", "площадь", "пл",
    "набережна", "набережная", "наб",
    "узвіз", "спуск",
)

MAX_NAME_WORDS = 3
MIN_NAME_LENGTH = 3

_WORD = r"[^\W\d_](?:[^\W\d_]|['’ʼ\-])*"
_TYPE_ALT = "|".join(re.escape(w) for w in STREET_TYPE_WORDS)
_STREET_RE = re.compile(
    rf"(?<!\w)(?:{_TYPE_ALT})(?!\w)\.?\s*(?P<name>{_WORD}(?:[ \t]+{_WORD}){{0,{MAX_NAME_WORDS - 1}}})"
)


def extract_street_names(text: Optional[str]) -> list[str]:
    """Normalized name candidates following a street-type word.

    Each match yields its word prefixes, longest first, because the text
    does not mark where the name ends ("вул. конатна біля моря").
    """
    normalized = normalize_text(text)
    if not normalized:
        return []

    candidates: list[str] = []
    for match in _STREET_RE.finditer(normalized):
        words = match.group("name").split()
        for n in range(len(words), 0, -1):
            name = normalize(" ".join(words[:n]))
            if len(name) >= MIN_NAME_LENGTH and name not in candidates:
                candidates.append(name)
    return candidates


def street_similarity(parsed: str, name: str, containment_score: float = 0.9) -> float:
    """Similarity in [0, 1] of a parsed name and a normalized street name.

    Names whose lengths differ by more than half never match; one name
    containing the other scores ``containment_score``; otherwise
    1 - Levenshtein distance / longer length.
    """
    if not parsed or not name:
        return 0.0
    if parsed == name:
        return 1.0
    longest = max(len(parsed), len(name))
    if abs(len(parsed) - len(name)) > longest * 0.5:
        return 0.0
    if parsed in name or name in parsed:
        return containment_score
    return Levenshtein.normalized_similarity(parsed, name)
