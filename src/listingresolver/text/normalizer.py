"""Canonical form of place, street and complex names.

The same ``normalize`` is applied to street names, geo names and complex
names at index time and to candidate names pulled from listing text, so a
name only ever has to match one canonical key. ``normalize_text`` applies
the character-level rules alone to free text: type words stay in place
because "вул." next to a name is itself a positive signal.

Examples:
    normalize("вул. Шевченка")      -> "шевченка"
    normalize("Вулиця Шевченка,")   -> "шевченка"
    normalize("ЖК «Перлина»")       -> "перлина"
    normalize("Приморський район")  -> "приморський"
"""

import re
import unicodedata
from functools import lru_cache

# Quote-like characters removed outright (guillemets, smart quotes, apostrophes)
QUOTE_CHARS = "\"'«»“”„‟‘’‚‛‹›ʼʻ`´′″"

# Every dash variant becomes a plain hyphen-minus
DASH_CHARS = "‐‑‒–—―−﹘﹣－"

_QUOTE_RE = re.compile(f"[{re.escape(QUOTE_CHARS)}]")
_DASH_RE = re.compile(f"[{re.escape(DASH_CHARS)}]")
_SEPARATOR_RE = re.compile(r"[,;:!?()\[\]{}/\\|]+")
_WHITESPACE_RE = re.compile(r"\s+")

# Street types (Ukrainian, Russian, English), full words and abbreviations
STREET_TYPE_TOKENS = (
    "вулиця", "вул", "улица", "ул",
    "проспект", "просп", "пр-т", "пр-кт", "пр",
    "провулок", "пров", "переулок", "пер",
    "бульвар", "бульв", "б-р",
    "площа", "площадь", "пл",
    "набережна", "набережная", "наб",
    "шосе", "шоссе", "алея", "аллея",
    "проїзд", "проезд", "узвіз", "спуск", "тупик", "майдан",
    "дорога", "лінія", "линия", "квартал", "кв-л",
    "street", "st", "avenue", "ave", "lane", "square",
)

# Geo types that prefix or suffix place names
GEO_TYPE_TOKENS = (
    "місто", "город", "селище", "поселок", "посёлок", "смт", "пгт", "село",
    "район", "р-н", "область", "обл", "мікрорайон", "микрорайон", "мкр", "мкрн",
)

# Residential complex types; longer phrases must precede their prefixes
COMPLEX_TYPE_TOKENS = (
    "житловий комплекс", "жилой комплекс", "residential complex",
    "котеджне містечко", "коттеджный городок", "котеджний городок",
    "клубний будинок", "клубный дом", "апарт-комплекс", "апарт комплекс",
    "таунхауси", "таунхаусы", "таунхаус", "дуплекси", "дуплексы", "дуплекс",
    "жк", "кг", "км",
)

# Abbreviations that are only type tokens when written with a dot ("м. Одеса")
DOTTED_ONLY_TOKENS = ("м", "г", "с", "д")

_ALL_TOKENS = sorted(
    set(STREET_TYPE_TOKENS + GEO_TYPE_TOKENS + COMPLEX_TYPE_TOKENS),
    key=len,
    reverse=True,
)
_TOKEN_ALT = "|".join(re.escape(t) for t in _ALL_TOKENS)
_DOTTED_ALT = "|".join(re.escape(t) for t in DOTTED_ONLY_TOKENS)

_LEADING_RE = re.compile(
    rf"^(?:(?:{_TOKEN_ALT})(?:\.\s*|\s+|$)|(?:{_DOTTED_ALT})\.\s*)"
)
_TRAILING_RE = re.compile(rf"(?:^|\s)(?:{_TOKEN_ALT})\.?$")


def _clean_characters(raw: str) -> str:
    text = raw.lower()
    text = _QUOTE_RE.sub("", text)
    text = _DASH_RE.sub("-", text)
    return text


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


@lru_cache(maxsize=65536)
def normalize(raw: str | None) -> str:
    """Canonicalize a street, geo or complex name.

    Lowercases, strips quote characters, unifies dashes, turns separators
    into spaces, strips leading and trailing type tokens and collapses
    whitespace. A name consisting only of type tokens is kept as is.

    Args:
        raw: Name as found in reference data or listing text

    Returns:
        Normalized name, "" for empty input
    """
    if not raw:
        return ""

    text = _collapse(_SEPARATOR_RE.sub(" ", _clean_characters(raw)))
    text = text.strip(" .-")
    if not text:
        return ""

    stripped = text
    while True:
        shorter = _LEADING_RE.sub("", stripped, count=1).strip(" .-")
        if shorter == stripped:
            break
        stripped = shorter
    while True:
        shorter = _TRAILING_RE.sub("", stripped, count=1).strip(" .-")
        if shorter == stripped:
            break
        stripped = shorter

    return stripped or text


def normalize_text(raw: str | None) -> str:
    """Apply the character rules of ``normalize`` to free text.

    Type tokens and punctuation stay, only case, quotes, dashes and
    whitespace are canonicalized.
    """
    if not raw:
        return ""
    return _collapse(_clean_characters(raw))


def fold_diacritics(raw: str) -> str:
    """Lowercase and drop combining marks (й -> и, ї -> і, é -> e)."""
    text = unicodedata.normalize("NFD", raw.lower())
    return "".join(c for c in text if unicodedata.category(c) != "Mn")
