from typing import Optional, Tuple

import structlog

from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import NameplateRecord
from nameplate.extraction.brands import (
    BRAND_PROFILES,
    DEFAULT_POLICY,
    QUICK_BRAND_PROFILES,
    BrandProfile,
    ScoringPolicy,
)
from nameplate.extraction.classifier import classify
from nameplate.extraction.model_extractor import extract_model
from nameplate.extraction.normalizer import normalize
from nameplate.extraction.rating import extract_rating
from nameplate.extraction.serial import extract_serial


class NameplateExtractor:
    """
    Turns recognized nameplate text into a ``NameplateRecord``.

    The classifier gates everything downstream: without a brand the record
    carries only the normalized text, so model and rating can never be set on
    an unrecognized label.

    ``strict=True`` is the authoritative path (OCR repairs on, serials must
    clear ``ScoringPolicy.strict_min_score``); ``strict=False`` is the quick
    pre-check with a lower acceptance threshold. Without explicit ``profiles``
    each mode reads its own table (``BRAND_PROFILES`` or ``QUICK_BRAND_PROFILES``).
    """

    def __init__(
        self,
        profiles: Optional[Tuple[BrandProfile, ...]] = None,
        policy: ScoringPolicy = DEFAULT_POLICY,
        strict: bool = True,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        if profiles is None:
            profiles = BRAND_PROFILES if strict else QUICK_BRAND_PROFILES
        self.profiles = profiles
        self.policy = policy
        self.strict = strict
        self.logger = logger or LoggerRegistry.get_extraction_logger("nameplate")

    def extract(self, raw_text: str) -> NameplateRecord:
        text = normalize(raw_text, repair=self.strict)
        brand, category = classify(text, self.profiles)

        if brand is None:
            self.logger.info("extraction.unrecognized", text_length=len(text), strict=self.strict)
            return NameplateRecord(category=category, source_text=text, strict=self.strict)

        model = extract_model(text, brand, category, self.profiles)
        serial = extract_serial(text, brand, category, self.strict, self.policy, self.profiles)
        rating = extract_rating(brand, model, text, category, self.profiles)

        record = NameplateRecord(
            brand=brand,
            category=category,
            model=model,
            serial=serial,
            rating=rating,
            source_text=text,
            strict=self.strict,
        )
        self.logger.info(
            "extraction.finished",
            brand=brand.value,
            category=category.value,
            model=model,
            serial=serial,
            rating=rating,
            strict=self.strict,
        )
        return record
