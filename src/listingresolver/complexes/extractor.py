"""Pull residential-complex name candidates out of listing text.

A candidate is whatever follows a complex keyword ("ЖК", "Житловий
комплекс", "КГ", ...): a quoted name, or up to three bare words. Bare
names yield every word prefix, longest first, because the text rarely
marks where the name ends ("ЖК Aurora продам 2к" -> "aurora продам 2к",
"aurora продам", "aurora").

Descriptions often mention nearby landmarks with the same keywords
("поруч ЖК Сільпо"), so every candidate is checked against a blacklist of
non-residential names before it is looked up.
"""

import logging
import re
from typing import Optional

from ..text.normalizer import DASH_CHARS, normalize

logger = logging.getLogger(__name__)

TRIGGER_KEYWORDS = (
    "житловий комплекс",
    "жилой комплекс",
    "residential complex",
    "котеджне містечко",
    "коттеджный городок",
    "котеджний городок",
    "клубний будинок",
    "клубный дом",
    "жк",
    "кг",
    "км",
)

# Also units after a number ("2 км до моря", "5 кг")
UNIT_LIKE_KEYWORDS = ("км", "кг")

MAX_BARE_WORDS = 3

# Names that follow a complex keyword but are not residential complexes
BLACKLIST = frozenset({
    # Retail chains and shops
    "сільпо", "сильпо", "novus", "новус", "varus", "варус", "атб", "атб-маркет",
    "фора", "ашан", "auchan", "metro", "метро", "епіцентр", "эпицентр", "таврія",
    "таврия", "копійка", "копейка", "велмарт", "comfy", "фокстрот", "rozetka",
    "розетка", "eldorado", "ельдорадо", "продукти", "продукты", "продуктовий",
    "магазин", "супермаркет", "гіпермаркет", "гипермаркет", "ринок", "рынок",
    "тц", "трц", "тк",
    # Banks and post
    "банк", "приватбанк", "ощадбанк", "монобанк", "пумб", "райффайзен",
    "укрсиббанк", "пошта", "почта", "нова пошта", "новая почта", "укрпошта",
    # Religious buildings
    "церква", "церковь", "храм", "собор", "монастир", "монастырь", "мечеть",
    "синагога", "каплиця", "часовня",
    # Education
    "школа", "садок", "дитсадок", "детсад", "ліцей", "лицей", "гімназія",
    "гимназия", "університет", "университет", "академія", "академия",
    "коледж", "колледж", "технікум", "техникум",
    # Health
    "лікарня", "больница", "поліклініка", "поликлиника", "клініка", "клиника",
    "медичний", "медицинский", "медцентр", "стоматологія", "стоматология",
    "аптека",
    # Infrastructure and utilities
    "котельня", "котельная", "теплопункт", "підстанція", "подстанция",
    "трансформаторна", "трансформаторная", "водоканал", "насосна", "насосная",
    "ангар", "склад", "гараж", "garage", "паркінг", "паркинг", "автомийка",
    "азс", "сто",
    # Government
    "поліція", "полиция", "військомат", "военкомат", "комісаріат", "тцк",
    "прокуратура", "суд", "рада", "цнап", "податкова", "мерія", "мэрия",
    # Catering
    "ресторан", "кафе", "бар", "паб", "піцерія", "пиццерия",
    # Generic building words
    "корпус", "будинок", "дом", "секція", "секция", "блок", "буд", "під'їзд",
    "подъезд", "новобудова", "новостройка", "комплекс",
    # Sports names
    "олімп", "олимп", "старт", "динамо", "спартак",
})

_DASH_RE = re.compile(f"[{re.escape(DASH_CHARS)}]")
_TRIGGER_ALT = "|".join(re.escape(k) for k in TRIGGER_KEYWORDS)

# Opening quote -> the closing quotes that end it
QUOTE_PAIRS = (
    ("«", "»"),
    ("“", "”"),
    ("„", "“”"),
    ('"', '"'),
    ("'", "'"),
    ("‘", "’"),
)

# Apostrophes inside a word ("прем'єр", "мар’їна")
_APOSTROPHES = "'’ʼ"


def _quoted_alternatives(min_length: int, max_length: int) -> str:
    # A closing quote followed by a letter is an apostrophe, not the end
    parts = []
    for i, (opening, closing) in enumerate(QUOTE_PAIRS):
        close = re.escape(closing)
        parts.append(
            rf"{re.escape(opening)}(?P<quoted{i}>(?:[^{close}\n]|[{close}](?=\w))"
            rf"{{{min_length},{max_length}}})[{close}]"
        )
    return "|".join(parts)


def is_blacklisted(name: str) -> bool:
    """Check a normalized name, or any of its leading word groups, against the blacklist."""
    words = name.split()
    return any(" ".join(words[:n]) in BLACKLIST for n in range(1, len(words) + 1))


class ComplexNameExtractor:
    """Extract complex-name candidates from free text.

    Example:
        extractor = ComplexNameExtractor()
        extractor.extract("Продаж 1к у ЖК «Перлина 5», поруч Сільпо")
        # ["перлина 5"]
    """

    def __init__(self, min_length: int = 3, max_length: int = 35):
        """Compile the trigger pattern.

        Args:
            min_length: Shortest accepted name
            max_length: Longest accepted name
        """
        self.min_length = min_length
        self.max_length = max_length
        word = rf"[^\W_][\w{_APOSTROPHES}\-]*"
        self._pattern = re.compile(
            rf"(?<!\w)(?P<trigger>{_TRIGGER_ALT})(?!\w)\.?\s*"
            rf"(?:{_quoted_alternatives(min_length, max_length)}"
            rf"|(?P<bare>{word}(?:[ \t]+{word}){{0,{MAX_BARE_WORDS - 1}}}))"
        )
        self._quoted_groups = tuple(f"quoted{i}" for i in range(len(QUOTE_PAIRS)))

    def _accept(self, name: str) -> bool:
        return self.min_length <= len(name) <= self.max_length

    def _bare_prefixes(self, bare: str) -> list[str]:
        words = bare.split()
        prefixes = []
        for n in range(len(words), 0, -1):
            candidate = normalize(" ".join(words[:n]))
            if self._accept(candidate) and candidate not in prefixes:
                prefixes.append(candidate)
        return prefixes

    def extract_all(self, text: Optional[str]) -> list[str]:
        """Candidates in text order, blacklisted ones included."""
        if not text:
            return []
        prepared = _DASH_RE.sub("-", text.lower())

        candidates: list[str] = []
        for match in self._pattern.finditer(prepared):
            trigger = match.group("trigger")
            if trigger in UNIT_LIKE_KEYWORDS:
                before = prepared[: match.start()].rstrip()
                if before and before[-1].isdigit():
                    continue

            quoted = next((match.group(g) for g in self._quoted_groups if match.group(g)), None)
            if quoted:
                name = normalize(quoted)
                found = [name] if self._accept(name) else []
            else:
                found = self._bare_prefixes(match.group("bare"))

            for name in found:
                if name not in candidates:
                    candidates.append(name)
        return candidates

    def extract(self, text: Optional[str]) -> list[str]:
        """Candidates in text order with blacklisted names removed."""
        accepted = []
        for name in self.extract_all(text):
            if is_blacklisted(name):
                logger.debug(f"Rejected blacklisted complex candidate '{name}'")
                continue
            accepted.append(name)
        return accepted


_default_extractor = ComplexNameExtractor()


def extract_candidates(text: Optional[str]) -> list[str]:
    """Blacklist-filtered candidates using the default name length bounds."""
    return _default_extractor.extract(text)
