from typing import NamedTuple, Optional, Tuple

from nameplate.domain.models import Brand, Category
from nameplate.extraction.brands import BRAND_PROFILES, BrandProfile


class Classification(NamedTuple):
    brand: Optional[Brand]
    category: Category


UNRECOGNIZED = Classification(brand=None, category=Category.INVERTER)


def classify(normalized_text: str, profiles: Tuple[BrandProfile, ...] = BRAND_PROFILES) -> Classification:
    """
    Infers the manufacturer and coarse category of a nameplate.

    Profiles are tried in order and the first whose signature matches wins.
    The category flips to battery only when that same profile's battery
    indicators are present. No matching profile yields ``UNRECOGNIZED``.
    """
    upper = (normalized_text or "").upper()
    for profile in profiles:
        if profile.matches(upper):
            category = Category.BATTERY if profile.is_battery(upper) else Category.INVERTER
            return Classification(brand=profile.brand, category=category)
    return UNRECOGNIZED
