# laxbay/filters.py
"""Free-text filter extraction for the chat assistant.

Best-effort regex heuristics that pull a price range, a location and a
category out of a shopper's message. Nothing here raises: a pattern that
does not match simply leaves its field unset.
"""
import re
from dataclasses import dataclass, asdict
from typing import Optional

_NUM = r"\$?\s?(\d+(?:,\d{3})*(?:\.\d+)?)"

BETWEEN_RE = re.compile(rf"\bbetween\s+{_NUM}\s+(?:and|to)\s+{_NUM}", re.I)
RANGE_RE = re.compile(rf"(?<![\w.]){_NUM}\s*[-–]\s*{_NUM}(?![\w.])", re.I)
UNDER_RE = re.compile(rf"\b(?:under|below|less\s+than)\s+{_NUM}", re.I)
OVER_RE = re.compile(rf"\b(?:over|above|more\s+than)\s+{_NUM}", re.I)

# words that end a location/category phrase even without punctuation
_PHRASE_END = r"(?=\s*(?:[,.;:!?()]|$)|\s+(?:under|below|less|over|above|more|between|for|with|near|and|or|that|which|category|type|in)\b|\s+\$?\d)"
LOCATION_RE = re.compile(rf"\bin\s+([a-z][a-z '\-]*?){_PHRASE_END}", re.I)
CATEGORY_RE = re.compile(rf"\b(?:category|type)\s*[:=]?\s*([a-z][a-z /&'\-]*?){_PHRASE_END}", re.I)

# "in good condition", "in stock", "in new condition" are not places
_CONDITION_WORDS = {"good", "great", "excellent", "used", "mint", "decent", "fair", "perfect", "stock"}
_CONDITION_NOUNS = {"condition", "shape"}


@dataclass(frozen=True)
class FilterSet:
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    location: Optional[str] = None
    category: Optional[str] = None

    def to_conditions(self):
        """Keyword arguments for `crud.posting_conditions`."""
        return asdict(self)

    def to_dict(self):
        out = {
            "minPrice": self.min_price,
            "maxPrice": self.max_price,
            "location": self.location,
            "category": self.category,
        }
        return {k: v for k, v in out.items() if v is not None}


def _number(raw: str) -> float:
    value = float(raw.replace(",", ""))
    return int(value) if value.is_integer() else value


def _price_range(text: str):
    m = BETWEEN_RE.search(text) or RANGE_RE.search(text)
    if m:
        lo, hi = sorted((_number(m.group(1)), _number(m.group(2))))
        return lo, hi
    m = UNDER_RE.search(text)
    if m:
        return None, _number(m.group(1))
    m = OVER_RE.search(text)
    if m:
        return _number(m.group(1)), None
    return None, None


def _is_condition(words) -> bool:
    return words[0] in _CONDITION_WORDS or words[-1] in _CONDITION_NOUNS


def _phrase(pattern, text: str) -> Optional[str]:
    for m in pattern.finditer(text):
        words = m.group(1).lower().split()
        if words and words[0] == "the":
            words = words[1:]
        if words and not _is_condition(words):
            return " ".join(words)
    return None


def parse_filters(text: str) -> FilterSet:
    """Extract a FilterSet from free text.

    Only one price rule applies per message, tried in order: an explicit
    range ("between 50 and 100", "50-100"), then an upper bound
    ("under 80"), then a lower bound ("over 20").
    """
    text = text or ""
    min_price, max_price = _price_range(text)
    return FilterSet(
        min_price=min_price,
        max_price=max_price,
        location=_phrase(LOCATION_RE, text),
        category=_phrase(CATEGORY_RE, text),
    )
