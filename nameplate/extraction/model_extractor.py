import re
from typing import Iterable, Optional, Pattern, Tuple

from nameplate.domain.models import Brand, Category
from nameplate.extraction.brands import BRAND_PROFILES, GENERIC_MODEL_RULES, BrandProfile, get_profile

MIN_MODEL_LENGTH = 3

_NEXT_FIELD = re.compile(
    r"\b(?:SERIAL|S/N|SN|INPUT|OUTPUT|AC|DC|POWER|RATED|MPPT|VOLT|CURRENT|FREQ|HZ)\b",
    re.IGNORECASE,
)
_LINE_BREAK = re.compile(r"[\n\r]")
_EDGE_PUNCT_LEFT = re.compile(r"^[\s:;#.-]+")
_EDGE_PUNCT_RIGHT = re.compile(r"[\s,;#.-]+$")
# Two codes, both carrying digits, separated by one space: OCR split of a single code.
_SPLIT_CODE = re.compile(r"^(?=[A-Z./_-]*\d)[A-Z0-9][A-Z0-9./_-]+ (?=[A-Z./_-]*\d)[A-Z0-9][A-Z0-9./_-]+$", re.IGNORECASE)


def cut_at_next_field(value: str) -> str:
    value = _LINE_BREAK.split(value, maxsplit=1)[0]
    value = _NEXT_FIELD.split(value, maxsplit=1)[0]
    return value.strip()


def clean_model(value: Optional[str]) -> Optional[str]:
    """Trims edge punctuation, collapses whitespace and rejoins a code OCR split in two."""
    if not value:
        return None
    cleaned = _EDGE_PUNCT_LEFT.sub("", value)
    cleaned = _EDGE_PUNCT_RIGHT.sub("", cleaned)
    cleaned = " ".join(cleaned.split())
    if _SPLIT_CODE.match(cleaned):
        cleaned = cleaned.replace(" ", "")
    return cleaned or None


def _first_match(text: str, rules: Iterable[Pattern[str]]) -> Optional[str]:
    for rule in rules:
        match = rule.search(text)
        if not match:
            continue
        model = clean_model(cut_at_next_field(match.group(1)))
        if model and len(model) >= MIN_MODEL_LENGTH:
            return model
    return None


def extract_model(
    raw_text: str,
    brand: Optional[Brand],
    category: Category = Category.INVERTER,
    profiles: Tuple[BrandProfile, ...] = BRAND_PROFILES,
) -> Optional[str]:
    """
    Isolates the model designator of a recognized nameplate.

    Brand rules run first (battery rules ahead of them for batteries), then the
    generic MODEL/TYPE labels. Unrecognized nameplates never get a model.
    """
    profile = get_profile(brand, profiles)
    if profile is None or not raw_text:
        return None

    brand_rules = profile.model_rules
    if category is Category.BATTERY:
        brand_rules = profile.battery_model_rules + brand_rules

    return _first_match(raw_text, brand_rules) or _first_match(raw_text, GENERIC_MODEL_RULES)
