import pytest

from phone_auth.core.errors import InvalidPhone, PhoneLengthOutOfRange, UnknownOrInactiveCountryRule
from phone_auth.core.phone import (
    PatternBasedPhoneNormalizer,
    RuleBasedPhoneNormalizer,
    build_phone_normalizer,
    normalize_national_number,
    strip_to_digits,
)


def test_strip_to_digits():
    assert strip_to_digits(" (017) 1234-5678 ") == "01712345678"
    assert strip_to_digits("") == ""
    assert strip_to_digits(None) == ""


@pytest.mark.parametrize("raw", ["1712345678", "17 1234 5678", "(17) 1234-5678", "17.1234.5678"])
def test_rule_based_formats_collapse_to_one_canonical_phone(db, phone_codes, raw):
    normalized = RuleBasedPhoneNormalizer().normalize(db, phone_codes["BD"].id, raw)
    assert normalized.phone == "+8801712345678"
    assert normalized.country_phone_code_id == phone_codes["BD"].id


def test_rule_based_canonical_length_tracks_the_rule(db, phone_codes):
    normalizer = RuleBasedPhoneNormalizer()
    nepal = phone_codes["NP"]
    for digits in ("98123456", "981234567", "9812345678"):
        phone = normalizer.normalize(db, nepal.id, digits).phone
        assert phone.startswith(nepal.dial_code)
        assert len(phone) == len(nepal.dial_code) + len(digits)


def test_rule_based_rejects_numbers_outside_the_length_range(db, phone_codes):
    normalizer = RuleBasedPhoneNormalizer()
    with pytest.raises(PhoneLengthOutOfRange) as exc:
        normalizer.normalize(db, phone_codes["NP"].id, "1234567")
    assert exc.value.message == "Enter between 8 and 10 digits for this country."
    with pytest.raises(PhoneLengthOutOfRange):
        normalizer.normalize(db, phone_codes["NP"].id, "12345678901")


def test_rule_based_requires_digits(db, phone_codes):
    with pytest.raises(InvalidPhone) as exc:
        RuleBasedPhoneNormalizer().normalize(db, phone_codes["BD"].id, "--")
    assert exc.value.field == "phone"


def test_rule_based_rejects_unknown_and_inactive_rules(db, phone_codes):
    normalizer = RuleBasedPhoneNormalizer()
    with pytest.raises(UnknownOrInactiveCountryRule):
        normalizer.normalize(db, 9999, "1712345678")

    phone_codes["SG"].is_active = False
    db.commit()
    with pytest.raises(UnknownOrInactiveCountryRule) as exc:
        normalizer.normalize(db, phone_codes["SG"].id, "81234567")
    assert exc.value.field == "country_phone_code_id"


def test_rule_based_uses_the_default_rule_without_an_id(db, phone_codes):
    normalized = RuleBasedPhoneNormalizer().normalize(db, None, "1712345678")
    assert normalized.country_code.iso_code == "BD"


def test_rule_based_without_a_default_rule(db, phone_codes):
    phone_codes["BD"].is_default = False
    db.commit()
    with pytest.raises(UnknownOrInactiveCountryRule):
        RuleBasedPhoneNormalizer().normalize(db, None, "1712345678")


def test_normalize_national_number_is_deterministic(phone_codes):
    bd = phone_codes["BD"]
    assert normalize_national_number(bd, "17-1234-5678") == normalize_national_number(bd, "1712345678")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+8801712345678", "+8801712345678"),
        ("8801712345678", "+8801712345678"),
        ("+1 (415) 555-2671", "+14155552671"),
        (" +44 20.7946.0958 ", "+442079460958"),
    ],
)
def test_pattern_based_accepts_international_numbers(raw, expected):
    normalized = PatternBasedPhoneNormalizer().normalize(None, None, raw)
    assert normalized.phone == expected
    assert normalized.country_phone_code_id is None


@pytest.mark.parametrize("raw", ["+1234567", "+1234567890123456", "+88017abc5678", "++8801712345678"])
def test_pattern_based_rejects_malformed_numbers(raw):
    with pytest.raises(InvalidPhone) as exc:
        PatternBasedPhoneNormalizer().normalize(None, None, raw)
    assert exc.value.message == PatternBasedPhoneNormalizer.message


@pytest.mark.parametrize("raw", ["", "   ", "+", "( )"])
def test_pattern_based_blank_input(raw):
    with pytest.raises(InvalidPhone) as exc:
        PatternBasedPhoneNormalizer().normalize(None, None, raw)
    assert exc.value.message == "Please enter the rest of your mobile number."


def test_pattern_based_ignores_the_country_selection(db, phone_codes):
    normalized = PatternBasedPhoneNormalizer().normalize(db, phone_codes["US"].id, "+8801712345678")
    assert normalized.phone == "+8801712345678"


def test_build_phone_normalizer():
    assert isinstance(build_phone_normalizer("rule_based"), RuleBasedPhoneNormalizer)
    assert isinstance(build_phone_normalizer("pattern_based"), PatternBasedPhoneNormalizer)
    with pytest.raises(RuntimeError):
        build_phone_normalizer("libphonenumber")
