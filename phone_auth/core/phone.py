"""
Phone normalization strategies.

RuleBasedPhoneNormalizer validates the national significant number against a
CountryPhoneCode row and prefixes its dial code. PatternBasedPhoneNormalizer
accepts a full international number (8-15 digits, optional leading "+") and
ignores any country selection. Deployments pick one through PHONE_NORMALIZER;
the two produce different canonical forms and are never mixed.
"""

import re
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from phone_auth.core.errors import InvalidPhone, PhoneLengthOutOfRange, UnknownOrInactiveCountryRule
from phone_auth.models.country_phone_code import CountryPhoneCode

_NON_DIGITS = re.compile(r"[^0-9]")
_INTERNATIONAL_PATTERN = re.compile(r"^\+?[0-9]{8,15}$")
_SEPARATORS = re.compile(r"[\s\-().]")


@dataclass(frozen=True)
class NormalizedPhone:
    phone: str
    country_code: Optional[CountryPhoneCode] = None

    @property
    def country_phone_code_id(self) -> Optional[int]:
        return self.country_code.id if self.country_code is not None else None


class PhoneNormalizer(Protocol):
    def normalize(
        self, db: Session, country_phone_code_id: Optional[int], raw_phone: str
    ) -> NormalizedPhone:
        ...


def strip_to_digits(raw_phone: str) -> str:
    return _NON_DIGITS.sub("", raw_phone or "")


def normalize_national_number(country_code: CountryPhoneCode, raw_phone: str) -> str:
    digits = strip_to_digits(raw_phone)
    if not digits:
        raise InvalidPhone()

    if not country_code.min_nsn_length <= len(digits) <= country_code.max_nsn_length:
        raise PhoneLengthOutOfRange(country_code.min_nsn_length, country_code.max_nsn_length)

    return f"{country_code.dial_code}{digits}"


class RuleBasedPhoneNormalizer:
    """Country-rule aware normalization; falls back to the default rule when no id is sent."""

    def normalize(
        self, db: Session, country_phone_code_id: Optional[int], raw_phone: str
    ) -> NormalizedPhone:
        country_code = self._resolve_rule(db, country_phone_code_id)
        return NormalizedPhone(
            phone=normalize_national_number(country_code, raw_phone),
            country_code=country_code,
        )

    @staticmethod
    def _resolve_rule(db: Session, country_phone_code_id: Optional[int]) -> CountryPhoneCode:
        query = db.query(CountryPhoneCode).filter(CountryPhoneCode.is_active.is_(True))

        if country_phone_code_id is None:
            country_code = (
                query.filter(CountryPhoneCode.is_default.is_(True))
                .order_by(CountryPhoneCode.id)
                .first()
            )
        else:
            country_code = query.filter(CountryPhoneCode.id == country_phone_code_id).first()

        if not country_code:
            raise UnknownOrInactiveCountryRule()
        return country_code


class PatternBasedPhoneNormalizer:
    """Generic international pattern; canonical form is "+" followed by the digits."""

    message = "Enter a valid international phone number, including the country code."

    def normalize(
        self, db: Session, country_phone_code_id: Optional[int], raw_phone: str
    ) -> NormalizedPhone:
        candidate = _SEPARATORS.sub("", (raw_phone or "").strip())
        if not candidate or candidate == "+":
            raise InvalidPhone()
        if not _INTERNATIONAL_PATTERN.match(candidate):
            raise InvalidPhone(self.message)
        return NormalizedPhone(phone="+" + candidate.lstrip("+"))


def build_phone_normalizer(mode: str) -> PhoneNormalizer:
    if mode == "rule_based":
        return RuleBasedPhoneNormalizer()
    if mode == "pattern_based":
        return PatternBasedPhoneNormalizer()
    raise RuntimeError(f"Unsupported PHONE_NORMALIZER '{mode}'")
