"""
Vernacular lexicon for farm produce offers.

Read-only lookup tables mapping Hindi/Hinglish/Marathi commodity words,
quality keywords, growing regions and spoken unit words to canonical
values. Used to enrich the translation prompt and to recover fields the
completion left out.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType

# Vernacular term -> canonical commodity (many-to-one).
# Longer terms come first so "alphonso" wins over "aam".
COMMODITY_SYNONYMS = MappingProxyType(
    {
        "alphonso": "Alphonso Mangoes",
        "basmati": "Basmati Rice",
        "pyaaz": "Onions",
        "pyaz": "Onions",
        "kanda": "Onions",
        "onion": "Onions",
        "mango": "Mangoes",
        "aam": "Mangoes",
        "tamatar": "Tomatoes",
        "tomato": "Tomatoes",
        "aloo": "Potatoes",
        "potato": "Potatoes",
        "batata": "Potatoes",
        "gehun": "Wheat",
        "gehu": "Wheat",
        "wheat": "Wheat",
        "chawal": "Rice",
        "rice": "Rice",
        "daal": "Lentils",
        "dal": "Lentils",
        "lentil": "Lentils",
        "cucumber": "Cucumber",
        "kheera": "Cucumber",
        "kakdi": "Cucumber",
    }
)

GRADE_KEYWORDS = MappingProxyType(
    {
        "grade a": "A",
        "a grade": "A",
        "first class": "A",
        "grade b": "B",
        "b grade": "B",
        "premium": "Premium",
        "top quality": "Premium",
        "best": "Premium",
        "organic": "Organic",
    }
)

REGION_KEYWORDS = MappingProxyType(
    {
        "nasik": "Nasik",
        "nashik": "Nasik",
        "ratnagiri": "Ratnagiri",
        "pune": "Pune",
        "mumbai": "Mumbai",
        "delhi": "Delhi",
        "bengaluru": "Bengaluru",
        "bangalore": "Bengaluru",
        "hyderabad": "Hyderabad",
    }
)

# Spoken unit word -> canonical unit
UNIT_WORDS = MappingProxyType(
    {
        "kg": "kg",
        "kgs": "kg",
        "kilo": "kg",
        "kilos": "kg",
        "kilogram": "kg",
        "kilograms": "kg",
        "quintal": "quintal",
        "quintals": "quintal",
        "ton": "ton",
        "tons": "ton",
        "tonne": "ton",
        "gram": "g",
        "grams": "g",
        "g": "g",
        "piece": "piece",
        "pieces": "piece",
        "dozen": "dozen",
        "crate": "crate",
        "crates": "crate",
        "peti": "crate",
        "box": "box",
        "boxes": "box",
    }
)

# Commodity keyword -> icon path
COMMODITY_ICONS = MappingProxyType(
    {
        "onion": "/icons/onion.png",
        "pyaaz": "/icons/onion.png",
        "pyaz": "/icons/onion.png",
        "kanda": "/icons/onion.png",
        "mango": "/icons/mango.png",
        "aam": "/icons/mango.png",
        "alphonso": "/icons/mango.png",
        "tomato": "/icons/tomato.png",
        "tamatar": "/icons/tomato.png",
        "potato": "/icons/potato.png",
        "aloo": "/icons/potato.png",
        "batata": "/icons/potato.png",
        "wheat": "/icons/wheat.png",
        "gehun": "/icons/wheat.png",
        "gehu": "/icons/wheat.png",
    }
)

DEFAULT_COMMODITY_ICON = "/icons/default.png"

CURRENCY_WORDS = ("rs", "rs.", "rupees", "rupee", "rupaye", "rupaiya", "/-")
PRICE_WORDS = ("price", "rate", "kimat", "bhav", "daam")

_NUMBER = r"(\d+(?:\.\d+)?)"
_QUANTITY_RE = re.compile(
    _NUMBER
    + r"\s*("
    + "|".join(re.escape(w) for w in sorted(UNIT_WORDS, key=len, reverse=True))
    + r")\b"
)
_PRICE_AFTER_NUMBER_RE = re.compile(
    _NUMBER + r"\s*(?:" + "|".join(re.escape(w) for w in CURRENCY_WORDS) + r")"
)
_PRICE_BEFORE_NUMBER_RE = re.compile(
    r"(?:" + "|".join(PRICE_WORDS) + r")\s*(?:is|of|hai)?\s*(?:rs\.?\s*)?" + _NUMBER
)


@dataclass(frozen=True)
class LexicalScan:
    """Everything the lexicon could recover from raw text."""

    commodity: str | None = None
    region: str | None = None
    grade: str | None = None
    quantity: tuple[int, str] | None = None
    price: float | None = None

    @property
    def product_name(self) -> str | None:
        """Commodity prefixed with its region, e.g. "Nasik Onions"."""
        if not self.commodity:
            return None
        if self.region:
            return f"{self.region} {self.commodity}"
        return self.commodity


def _mentions(keyword: str, lower: str) -> bool:
    """Whole-word match, allowing an English plural ("onions", "tomatoes")."""
    return re.search(rf"\b{re.escape(keyword)}(?:e?s)?\b", lower) is not None


def _first_keyword(text: str, table: MappingProxyType) -> str | None:
    lower = text.lower()
    for keyword, canonical in table.items():
        if _mentions(keyword, lower):
            return canonical
    return None


def map_commodity_name(text: str) -> str | None:
    """Map a vernacular commodity mention to its canonical name."""
    return _first_keyword(text, COMMODITY_SYNONYMS)


def extract_region(text: str) -> str | None:
    """Find a known growing region in the text."""
    return _first_keyword(text, REGION_KEYWORDS)


def extract_grade(text: str) -> str | None:
    """Find a quality grade keyword in the text."""
    return _first_keyword(text, GRADE_KEYWORDS)


def extract_quantity(text: str) -> tuple[int, str] | None:
    """
    Find a number immediately preceding a known unit word.

    Returns:
        (count, canonical_unit) or None
    """
    match = _QUANTITY_RE.search(text.lower())
    if not match:
        return None
    count = float(match.group(1))
    if count != int(count):
        return None
    return int(count), UNIT_WORDS[match.group(2)]


def extract_price(text: str) -> float | None:
    """Find an asking price ("40 rupaye", "bhav 40")."""
    lower = text.lower()
    match = _PRICE_AFTER_NUMBER_RE.search(lower) or _PRICE_BEFORE_NUMBER_RE.search(lower)
    if not match:
        return None
    return float(match.group(1))


def commodity_icon(name: str | None) -> str:
    """Get the icon path for a commodity or product name."""
    if name:
        lower = name.lower()
        for keyword, icon in COMMODITY_ICONS.items():
            if _mentions(keyword, lower):
                return icon
    return DEFAULT_COMMODITY_ICON


def scan(text: str) -> LexicalScan:
    """Run every lookup over the text."""
    return LexicalScan(
        commodity=map_commodity_name(text),
        region=extract_region(text),
        grade=extract_grade(text),
        quantity=extract_quantity(text),
        price=extract_price(text),
    )


def prompt_hints(text: str) -> str:
    """
    Build the vocabulary hint block for the translation prompt.

    Lists the canonical vocabulary and whatever the lexicon already
    recognized in this particular text.
    """
    found = scan(text)
    commodities = sorted(set(COMMODITY_SYNONYMS.values()))
    lines = [
        "Known commodity synonyms: "
        + ", ".join(f"{k} -> {v}" for k, v in COMMODITY_SYNONYMS.items()),
        "Canonical commodities: " + ", ".join(commodities),
        "Grade vocabulary: " + ", ".join(sorted(set(GRADE_KEYWORDS.values()))),
        "Known regions: " + ", ".join(sorted(set(REGION_KEYWORDS.values()))),
    ]

    recognized = []
    if found.commodity:
        recognized.append(f"commodity={found.commodity}")
    if found.region:
        recognized.append(f"region={found.region}")
    if found.grade:
        recognized.append(f"grade={found.grade}")
    if found.quantity:
        recognized.append(f"quantity={found.quantity[0]} {found.quantity[1]}")
    if found.price is not None:
        recognized.append(f"price={found.price:g}")
    if recognized:
        lines.append("Recognized in this input: " + ", ".join(recognized))

    return "\n".join(lines)
