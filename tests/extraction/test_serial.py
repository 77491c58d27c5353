import pytest

from nameplate.domain.models import Brand, CandidateSource, Category
from nameplate.extraction.brands import DEFAULT_POLICY, DEYE
from nameplate.extraction.serial import (
    extract_serial,
    generate_candidates,
    is_denylisted,
    normalize_candidate,
    rank_candidates,
    score_candidate,
    take_reasonable_token,
)


def test_normalize_candidate():
    assert normalize_candidate("ab-12 34") == "AB1234"
    assert normalize_candidate("") == ""


@pytest.mark.parametrize("value", ["UKCA", "IP65", "230VAC", "5000W", "50HZ", "INVERTER", "LITHIUM"])
def test_denylist(value):
    assert is_denylisted(value)


def test_brand_name_is_denylisted_for_its_own_profile():
    assert is_denylisted("DEYE", DEYE)
    assert not is_denylisted("DEYE")


def test_plausible_serial_is_not_denylisted():
    assert not is_denylisted("2201A00123456789")


def test_take_reasonable_token_joins_short_split_code():
    assert take_reasonable_token("2201A 00123456") == "2201A00123456"


def test_take_reasonable_token_keeps_first_word_otherwise():
    assert take_reasonable_token("ABC123 Made in China") == "ABC123"
    assert take_reasonable_token("123456789 12") == "123456789"
    assert take_reasonable_token("ABCD1234, batch 7") == "ABCD1234"


def test_labeled_candidates_come_first():
    candidates = generate_candidates("LOT 99887766\nS/N: 2201A00123456789", DEYE)
    assert candidates[0].value == "2201A00123456789"
    assert candidates[0].source is CandidateSource.LABEL
    assert [c.value for c in candidates[1:]] == ["99887766", "2201A00123456789"]
    assert all(c.source is CandidateSource.GENERIC for c in candidates[1:])


def test_generic_candidates_skip_short_and_denylisted_tokens():
    candidates = generate_candidates("DEYE HYBRID INVERTER 230VAC ABCD1234", DEYE)
    assert [c.value for c in candidates] == ["ABCD1234"]


def test_label_beats_generic_with_same_shape():
    upper = "X"
    labeled = score_candidate("ABCD1234", CandidateSource.LABEL, upper, None, Category.INVERTER)
    generic = score_candidate("ABCD1234", CandidateSource.GENERIC, upper, None, Category.INVERTER)
    assert labeled - generic == DEFAULT_POLICY.labeled_base - DEFAULT_POLICY.generic_base


def test_denylisted_value_scores_floor():
    score = score_candidate("UKCA", CandidateSource.LABEL, "", None, Category.INVERTER)
    assert score == DEFAULT_POLICY.denylisted_score


def test_deye_battery_shape_bonus():
    upper = "DEYE\nNOMINAL ENERGY\nSN: 23AB120456789012"
    battery = score_candidate("23AB120456789012", CandidateSource.LABEL, upper, DEYE, Category.BATTERY)
    inverter = score_candidate("23AB120456789012", CandidateSource.LABEL, upper, DEYE, Category.INVERTER)
    assert battery - inverter == 60 + 100 + 20


def test_deye_inverter_ten_digit_bonus():
    upper = "DEYE\nSN: 2104123456"
    assert score_candidate("2104123456", CandidateSource.LABEL, upper, DEYE, Category.INVERTER) == 166


def test_duplicates_keep_best_score_once():
    ranked = rank_candidates("S/N: ABCD123456\nABCD123456", None, Category.INVERTER)
    assert len(ranked) == 1
    assert ranked[0].source is CandidateSource.LABEL


def test_ties_resolve_to_earliest_candidate():
    ranked = rank_candidates("ABCD1234 EFGH5678", None, Category.INVERTER)
    assert ranked[0].score == ranked[1].score
    assert [c.value for c in ranked] == ["ABCD1234", "EFGH5678"]


def test_extract_serial_is_deterministic():
    text = "DEYE\nMODEL: SUN-10K-G\nS/N: 2201A00123456789\nLOT 99887766"
    results = {extract_serial(text, Brand.DEYE, Category.INVERTER) for _ in range(5)}
    assert results == {"2201A00123456789"}


def test_all_zero_serial_rejected_in_strict_mode_only():
    text = "DEYE\nS/N: 00000000"
    assert extract_serial(text, Brand.DEYE, Category.INVERTER, strict=True) is None
    assert extract_serial(text, Brand.DEYE, Category.INVERTER, strict=False) == "00000000"


def test_no_candidates():
    assert extract_serial("DEYE", Brand.DEYE, Category.INVERTER) is None
    assert extract_serial("", Brand.DEYE, Category.INVERTER, strict=False) is None
