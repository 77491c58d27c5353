import re
from typing import Optional, Tuple

from nameplate.domain.models import Brand, Category
from nameplate.extraction.brands import BRAND_PROFILES, BrandProfile, get_profile

NOMINAL_ENERGY_VALUE = re.compile(r"Nominal\s*Energy\s*[:.\-]?\s*(\d+[.,]?\d*)\s*(k?)Wh", re.IGNORECASE)


def parse_decimal(value: str) -> float:
    """Parses a label number, accepting a comma as the decimal separator."""
    return float(value.replace(",", "."))


def extract_nominal_energy(raw_text: str) -> Optional[float]:
    match = NOMINAL_ENERGY_VALUE.search(raw_text or "")
    if not match:
        return None
    value = parse_decimal(match.group(1))
    if not match.group(2):
        # Plain Wh on the label; ratings are reported in kWh.
        value = value / 1000
    return value


def extract_rating(
    brand: Optional[Brand],
    model: Optional[str],
    raw_text: str,
    category: Category,
    profiles: Tuple[BrandProfile, ...] = BRAND_PROFILES,
) -> Optional[float]:
    """
    Derives the kWh capacity of a battery or the kW power of an inverter.

    Batteries prefer an explicit "Nominal Energy" value; everything else falls
    back to the numeric suffix rules of the brand's model designator.
    """
    profile = get_profile(brand, profiles)
    if profile is None:
        return None

    if category is Category.BATTERY:
        energy = extract_nominal_energy(raw_text)
        if energy is not None:
            return energy

    if not model:
        return None
    upper_model = model.upper()
    for rule in profile.rating_rules:
        match = rule.search(upper_model)
        if match:
            return parse_decimal(match.group(1))
    return None
