"""
Brand configuration records.

Every brand-dependent decision in the extraction engine reads from a
``BrandProfile``: which text identifies the brand, which text marks a battery,
which rules find the model, which serial layouts earn bonuses and how the
rating is derived from the model. The authoritative path reads
``BRAND_PROFILES``; the quick pre-check reads ``QUICK_BRAND_PROFILES``, which
shares signatures and model rules but carries no battery detection and fewer
serial bonuses. The acceptance threshold and the OCR repairs also differ
between them (see ``ScoringPolicy`` and ``normalize``).
"""
import re
from dataclasses import dataclass, field, replace
from typing import Optional, Pattern, Tuple, Union

from nameplate.domain.models import Brand, Category

_I = re.IGNORECASE

# Model capture shared by the label rules: a code starting with an alphanumeric.
_CODE = r"([A-Z0-9][A-Z0-9 ./_-]{2,})"


@dataclass(frozen=True)
class ScoringPolicy:
    """Additive serial scoring weights and acceptance thresholds."""

    labeled_base: int = 60
    generic_base: int = 10
    long_length: int = 10
    long_bonus: int = 15
    very_long_length: int = 14
    very_long_bonus: int = 10
    overlong_length: int = 24
    overlong_penalty: int = -10
    mixed_bonus: int = 12
    digits_only_bonus: int = 6
    serial_marker_bonus: int = 5
    all_zero_penalty: int = -50
    all_letters_penalty: int = -10
    denylisted_score: int = -999

    generic_min_length: int = 8
    labeled_min_length: int = 4
    # Labeled values split by OCR are joined only when both halves are this short.
    split_part_max_length: int = 8

    strict_min_score: int = 40
    quick_min_score: int = 0

    def min_score(self, strict: bool) -> int:
        return self.strict_min_score if strict else self.quick_min_score


@dataclass(frozen=True)
class SerialPatternBonus:
    """Flat bonus for a serial matching ``pattern``, optionally for one category only."""

    pattern: Pattern[str]
    points: int
    category: Optional[Category] = None

    def score(self, value: str, category: Category) -> int:
        if self.category is not None and self.category is not category:
            return 0
        return self.points if self.pattern.search(value) else 0


@dataclass(frozen=True)
class SerialShapeBonus:
    """
    Bonus scaled by how closely a token follows a documented serial layout.

    A token of the right ``length`` earns ``length_points``; on top of that the
    exact letter/digit split earns ``exact_points``, a near split (a few letters
    and at least ``near_min_digits`` digits) ``near_points``, an all-digit token
    ``digits_only_points``. ``prefix`` adds ``prefix_points``.
    """

    length: int
    letters: int
    digits: int
    length_points: int
    exact_points: int
    near_points: int
    digits_only_points: int
    near_max_letters: int = 4
    near_min_digits: int = 12
    prefix: str = ""
    prefix_points: int = 0
    category: Optional[Category] = None

    def score(self, value: str, category: Category) -> int:
        if self.category is not None and self.category is not category:
            return 0
        if len(value) != self.length:
            return 0
        letters = sum(1 for ch in value if ch.isalpha())
        digits = sum(1 for ch in value if ch.isdigit())
        points = self.length_points
        if letters == self.letters and digits == self.digits:
            points += self.exact_points
        elif 1 <= letters <= self.near_max_letters and digits >= self.near_min_digits:
            points += self.near_points
        elif digits == self.length:
            points += self.digits_only_points
        if self.prefix and value.startswith(self.prefix):
            points += self.prefix_points
        return points


@dataclass(frozen=True)
class BrandProfile:
    brand: Brand
    signatures: Tuple[Pattern[str], ...]
    model_rules: Tuple[Pattern[str], ...]
    battery_indicators: Tuple[Pattern[str], ...] = ()
    battery_model_rules: Tuple[Pattern[str], ...] = ()
    serial_bonuses: Tuple[Union[SerialPatternBonus, SerialShapeBonus], ...] = ()
    rating_rules: Tuple[Pattern[str], ...] = ()
    # Literal tokens that are never this brand's serial (its own name, mostly).
    own_tokens: Tuple[str, ...] = field(default_factory=tuple)

    def matches(self, upper_text: str) -> bool:
        return any(sig.search(upper_text) for sig in self.signatures)

    def is_battery(self, upper_text: str) -> bool:
        return any(ind.search(upper_text) for ind in self.battery_indicators)

    def serial_bonus(self, value: str, category: Category) -> int:
        return sum(bonus.score(value, category) for bonus in self.serial_bonuses)


# Label rules, reused across brands in different priority orders.
MODEL_NO_RULE = re.compile(r"\bMODEL\b\s*(?:NO|N0|NUMBER)?\.?\s*[:#]?\s*(?!NAME\b)" + _CODE, _I)
MODEL_RULE = re.compile(r"\bMODEL\b\s*[:#]?\s*(?!NAME\b|NO\b|N0\b|NUMBER\b)" + _CODE, _I)
MODEL_NAME_RULE = re.compile(r"\bMODEL\s*NAME\b\s*[:#]?\s*" + _CODE, _I)

GENERIC_MODEL_RULES = (
    re.compile(r"\bMODEL(?:\s*(?:NO|N0|NUMBER))?\.?\b\s*[:#]?\s*(?!NAME\b)" + _CODE, _I),
    re.compile(r"\bTYPE\b\s*[:#]?\s*" + _CODE, _I),
)

NOMINAL_ENERGY = re.compile(r"NOMINAL\s*ENERGY", _I)

DEYE_BATTERY_MODEL = re.compile(r"\b((?:SE|RW|AI|BOS)-[A-Z0-9.]+(?:\s+(?:PRO|PLUS|MAX|M|G|E|S)(?![/\w]))?)\b", _I)

DEYE = BrandProfile(
    brand=Brand.DEYE,
    signatures=(
        re.compile(r"DEYE"),
        re.compile(r"\bSUN-[A-Z0-9./-]{4,}"),
        re.compile(r"\b(?:SE|RW)-[A-Z0-9]"),
    ),
    battery_indicators=(
        NOMINAL_ENERGY,
        re.compile(r"\b(?:SE|RW|AI|BOS)-[A-Z0-9]"),
    ),
    battery_model_rules=(DEYE_BATTERY_MODEL,),
    model_rules=(
        MODEL_NO_RULE,
        MODEL_NAME_RULE,
        re.compile(r"\b(SUN-[A-Z0-9./-]{5,})", _I),
    ),
    serial_bonuses=(
        SerialShapeBonus(
            length=16, letters=2, digits=14,
            length_points=60, exact_points=100, near_points=80, digits_only_points=40,
            prefix="2", prefix_points=20,
            category=Category.BATTERY,
        ),
        SerialPatternBonus(re.compile(r"^\d{10}$"), 80, category=Category.INVERTER),
        SerialPatternBonus(re.compile(r"^.{12,}$"), 4),
    ),
    rating_rules=(re.compile(r"\bSUN-(\d{1,2}(?:\.\d+)?)(?:K|KW)\b"),),
    own_tokens=("DEYE",),
)

SOLIS = BrandProfile(
    brand=Brand.SOLIS,
    signatures=(re.compile(r"SOLIS"), re.compile(r"GINLONG")),
    model_rules=(
        MODEL_RULE,
        MODEL_NO_RULE,
        MODEL_NAME_RULE,
        re.compile(r"\b(S[56]-[A-Z0-9./-]{3,})", _I),
    ),
    serial_bonuses=(SerialPatternBonus(re.compile(r"^\d{16}$"), 80),),
    rating_rules=(re.compile(r"(\d{1,3}(?:\.\d+)?)\s*K\b"),),
    own_tokens=("SOLIS", "GINLONG"),
)

SOLAX = BrandProfile(
    brand=Brand.SOLAX,
    signatures=(re.compile(r"SOLAX"), re.compile(r"SOLUX"), re.compile(r"\bX[13]-")),
    battery_indicators=(NOMINAL_ENERGY,),
    model_rules=(
        MODEL_NO_RULE,
        MODEL_RULE,
        MODEL_NAME_RULE,
        re.compile(r"\b(X[13]-[A-Z0-9./-]{3,})", _I),
    ),
    serial_bonuses=(SerialPatternBonus(re.compile(r"^H[A-Z0-9]{10,}$"), 60),),
    own_tokens=("SOLAX", "SOLUX"),
)

# Evaluation order is a priority list: signatures overlap, the first match wins.
BRAND_PROFILES: Tuple[BrandProfile, ...] = (DEYE, SOLIS, SOLAX)

# The quick pre-check knows no batteries and keeps only DEYE's length bonus.
QUICK_BRAND_PROFILES: Tuple[BrandProfile, ...] = (
    replace(
        DEYE,
        battery_indicators=(),
        battery_model_rules=(),
        serial_bonuses=(SerialPatternBonus(re.compile(r"^.{12,}$"), 4),),
    ),
    replace(SOLIS, serial_bonuses=()),
    replace(SOLAX, battery_indicators=(), serial_bonuses=()),
)

DEFAULT_POLICY = ScoringPolicy()


def get_profile(brand: Optional[Brand], profiles: Tuple[BrandProfile, ...] = BRAND_PROFILES) -> Optional[BrandProfile]:
    if brand is None:
        return None
    for profile in profiles:
        if profile.brand is brand:
            return profile
    return None
