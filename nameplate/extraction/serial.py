import re
from typing import Dict, List, Optional, Tuple

from nameplate.domain.models import Brand, CandidateSource, Category, ExtractionCandidate
from nameplate.extraction.brands import BRAND_PROFILES, DEFAULT_POLICY, BrandProfile, ScoringPolicy, get_profile

_LABEL_RULES = (
    re.compile(r"\bS\s*/\s*N\b\s*[:#]?\s*([A-Z0-9][A-Z0-9_/\-\s]{3,})", re.IGNORECASE),
    re.compile(r"\bSN\b\s*[:#]?\s*([A-Z0-9][A-Z0-9_/\-\s]{3,})", re.IGNORECASE),
    re.compile(r"\bSERIAL(?:\s*(?:NO|NUMBER))?\b\.?\s*[:#]?\s*([A-Z0-9][A-Z0-9_/\-\s]{3,})", re.IGNORECASE),
    re.compile(r"\bS/N\s*NO\b\.?\s*[:#]?\s*([A-Z0-9][A-Z0-9_/\-\s]{3,})", re.IGNORECASE),
)
_LABEL_VALUE_END = re.compile(r"[\n\r,;()]")
_PLAUSIBLE_CODE = re.compile(r"^[A-Z0-9][A-Z0-9_/\-]{6,}$")
_TOKEN_SPLIT = re.compile(r"[^A-Za-z0-9]+")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_SERIAL_MARKER = re.compile(r"SN|SERIAL")

# Regulatory marks, unit values and boilerplate words seen on every label.
_DENYLIST_PATTERNS = (
    re.compile(r"^(?:IP\d+|UKCA|CE|ROHS|FCC|TUV|HZ|VAC|VDC|AC|DC|KW|KVA|KWH|W|V|A)$"),
    re.compile(r"^\d{1,6}(?:V|W|A|HZ|KW|KVA|VA|WH|KWH|VAC|VDC|MA|AH)$"),
)
_DENYLIST_WORDS = frozenset({
    "MODEL", "BATTERY", "VERSION", "LIION", "CHINA", "SERIAL", "NUMBER", "INVERTER",
    "MANUFACTURER", "HYBRID", "LITHIUM", "CERTIFICATE", "NINGBO",
})


def normalize_candidate(value: str) -> str:
    return _NON_ALNUM.sub("", (value or "").upper())


def is_denylisted(value: str, profile: Optional[BrandProfile] = None) -> bool:
    if value in _DENYLIST_WORDS:
        return True
    if profile is not None and value in profile.own_tokens:
        return True
    return any(p.match(value) for p in _DENYLIST_PATTERNS)


def take_reasonable_token(raw: str, policy: ScoringPolicy = DEFAULT_POLICY) -> str:
    """Returns the first token after a serial label, rejoining a code OCR split in two."""
    cut = _LABEL_VALUE_END.split(raw.strip(), maxsplit=1)[0].strip()
    parts = cut.split()
    if len(parts) <= 1:
        return cut
    first, second = parts[0], parts[1]
    short = len(first) <= policy.split_part_max_length and len(second) <= policy.split_part_max_length
    joined = (first + second).upper()
    if short and any(ch.isdigit() for ch in second) and _PLAUSIBLE_CODE.match(joined):
        return first + second
    return first


def generate_candidates(
    text: str,
    profile: Optional[BrandProfile] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> List[ExtractionCandidate]:
    """Labeled candidates first, then every long bare token, in text order."""
    candidates: List[ExtractionCandidate] = []

    for rule in _LABEL_RULES:
        for match in rule.finditer(text):
            value = normalize_candidate(take_reasonable_token(match.group(1), policy))
            if len(value) >= policy.labeled_min_length:
                candidates.append(ExtractionCandidate(value=value, source=CandidateSource.LABEL))

    for token in _TOKEN_SPLIT.split(text):
        value = normalize_candidate(token)
        if len(value) < policy.generic_min_length or is_denylisted(value, profile):
            continue
        candidates.append(ExtractionCandidate(value=value, source=CandidateSource.GENERIC))

    return candidates


def score_candidate(
    value: str,
    source: CandidateSource,
    upper_text: str,
    profile: Optional[BrandProfile],
    category: Category,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> int:
    if is_denylisted(value, profile):
        return policy.denylisted_score

    score = policy.labeled_base if source is CandidateSource.LABEL else policy.generic_base

    if len(value) >= policy.long_length:
        score += policy.long_bonus
    if len(value) >= policy.very_long_length:
        score += policy.very_long_bonus
    if len(value) > policy.overlong_length:
        score += policy.overlong_penalty

    has_letters = any(ch.isalpha() for ch in value)
    has_digits = any(ch.isdigit() for ch in value)
    if has_letters and has_digits:
        score += policy.mixed_bonus
    elif has_digits:
        score += policy.digits_only_bonus

    if _SERIAL_MARKER.search(upper_text):
        score += policy.serial_marker_bonus

    if profile is not None:
        score += profile.serial_bonus(value, category)

    if set(value) == {"0"}:
        score += policy.all_zero_penalty
    if not has_digits:
        score += policy.all_letters_penalty

    return score


def rank_candidates(
    text: str,
    brand: Optional[Brand],
    category: Category,
    policy: ScoringPolicy = DEFAULT_POLICY,
    profiles: Tuple[BrandProfile, ...] = BRAND_PROFILES,
) -> List[ExtractionCandidate]:
    """
    Scores and deduplicates every candidate, best first.

    A value seen more than once keeps its best score but its first-seen
    position, and the sort is stable, so ties resolve to the earliest value.
    """
    profile = get_profile(brand, profiles)
    upper = (text or "").upper()

    best: Dict[str, ExtractionCandidate] = {}
    for candidate in generate_candidates(text or "", profile, policy):
        scored = candidate.model_copy(update={
            "score": score_candidate(candidate.value, candidate.source, upper, profile, category, policy),
        })
        current = best.get(scored.value)
        if current is None or scored.score > current.score:
            best[scored.value] = scored

    return sorted(best.values(), key=lambda c: c.score, reverse=True)


def extract_serial(
    normalized_text: str,
    brand: Optional[Brand],
    category: Category,
    strict: bool = True,
    policy: ScoringPolicy = DEFAULT_POLICY,
    profiles: Tuple[BrandProfile, ...] = BRAND_PROFILES,
) -> Optional[str]:
    """Returns the best-scoring serial that clears the mode's acceptance threshold."""
    ranked = rank_candidates(normalized_text, brand, category, policy, profiles)
    if not ranked or ranked[0].score < policy.min_score(strict):
        return None
    return ranked[0].value
