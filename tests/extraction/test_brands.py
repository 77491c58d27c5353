from nameplate.domain.models import Brand, Category
from nameplate.extraction.brands import BRAND_PROFILES, QUICK_BRAND_PROFILES, get_profile


def test_quick_table_keeps_priority_order():
    assert [p.brand for p in QUICK_BRAND_PROFILES] == [p.brand for p in BRAND_PROFILES]


def test_quick_profiles_share_signatures_and_model_rules():
    for strict, quick in zip(BRAND_PROFILES, QUICK_BRAND_PROFILES):
        assert quick.signatures == strict.signatures
        assert quick.model_rules == strict.model_rules
        assert quick.rating_rules == strict.rating_rules


def test_quick_profiles_detect_no_batteries():
    for profile in QUICK_BRAND_PROFILES:
        assert not profile.is_battery("DEYE RW-M6.1 NOMINAL ENERGY: 6.14KWH")
        assert profile.battery_model_rules == ()
    assert get_profile(Brand.DEYE).is_battery("DEYE RW-M6.1 NOMINAL ENERGY: 6.14KWH")


def test_quick_deye_keeps_only_the_length_bonus():
    strict = get_profile(Brand.DEYE)
    quick = get_profile(Brand.DEYE, QUICK_BRAND_PROFILES)
    assert strict.serial_bonus("1234567890", Category.INVERTER) == 80
    assert quick.serial_bonus("1234567890", Category.INVERTER) == 0
    assert quick.serial_bonus("123456789012", Category.INVERTER) == 4
    assert quick.serial_bonus("23AB120456789012", Category.BATTERY) == 4


def test_quick_solis_and_solax_have_no_serial_bonuses():
    assert get_profile(Brand.SOLIS).serial_bonus("1234567890123456", Category.INVERTER) == 80
    assert get_profile(Brand.SOLIS, QUICK_BRAND_PROFILES).serial_bonus("1234567890123456", Category.INVERTER) == 0
    assert get_profile(Brand.SOLAX).serial_bonus("HL50A1234567", Category.INVERTER) == 60
    assert get_profile(Brand.SOLAX, QUICK_BRAND_PROFILES).serial_bonus("HL50A1234567", Category.INVERTER) == 0


def test_get_profile_without_brand():
    assert get_profile(None) is None
    assert get_profile(Brand.SOLAX, ()) is None
