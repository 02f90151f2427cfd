"""
Login and registration flows.

Both run the same request pipeline: normalize the phone, guard the resend
cooldown and then the request throttle, issue the OTP and hand it to the SMS
dispatcher. They differ only in the subject the code is issued to and in
what a verified code turns into.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from phone_auth.core.auth import CredentialIssuer
from phone_auth.core.errors import (
    AccountNotFound,
    DeliveryFailed,
    PhoneAlreadyRegistered,
    SmsDeliveryError,
    ValidationFailure,
)
from phone_auth.core.phone import NormalizedPhone, PhoneNormalizer, strip_to_digits
from phone_auth.core.rate_limit import RateLimiter
from phone_auth.core.redis import CacheKeys
from phone_auth.core.security import hash_phone, make_unusable_password_hash
from phone_auth.core.sms import SmsDispatcher
from phone_auth.core.timezone import get_utc_now
from phone_auth.models.user import User
from phone_auth.services.otp_service import OTPService, OtpSubject

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "mobile.local"


@dataclass(frozen=True)
class OtpRequestPolicy:
    purpose: str
    cooldown_seconds: int
    max_requests: int
    window_seconds: int


@dataclass(frozen=True)
class OtpRequestResult:
    message: str
    expires_at: datetime
    resend_available_in: int
    preview_code: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    token: str
    user: User


class _OtpFlow:
    sent_message = "OTP sent successfully."
    token_name = "mobile-otp"

    def __init__(
        self,
        normalizer: PhoneNormalizer,
        rate_limiter: RateLimiter,
        otp_service: OTPService,
        sms_dispatcher: SmsDispatcher,
        credential_issuer: CredentialIssuer,
        policy: OtpRequestPolicy,
        phone_hash_salt: str,
        expose_preview: bool = False,
        password_hash_rounds: int = 12,
        clock: Callable[[], datetime] = get_utc_now,
    ):
        self.normalizer = normalizer
        self.rate_limiter = rate_limiter
        self.otp_service = otp_service
        self.sms_dispatcher = sms_dispatcher
        self.credential_issuer = credential_issuer
        self.policy = policy
        self.phone_hash_salt = phone_hash_salt
        # Fixed when the flow is built; production wiring never sets it
        self.expose_preview = expose_preview
        self.password_hash_rounds = password_hash_rounds
        self.clock = clock

    def _normalize(self, db: Session, country_phone_code_id: Optional[int], phone: str) -> NormalizedPhone:
        return self.normalizer.normalize(db, country_phone_code_id, phone)

    def _rate_limit_keys(self, phone: str) -> tuple[str, str]:
        phone_hash = hash_phone(phone, self.phone_hash_salt)
        return (
            CacheKeys.otp_cooldown(self.policy.purpose, phone_hash),
            CacheKeys.otp_throttle(self.policy.purpose, phone_hash),
        )

    def _guard(self, phone: str) -> str:
        """Cooldown first so "please wait" wins over the abuse window message."""
        cooldown_key, throttle_key = self._rate_limit_keys(phone)
        self.rate_limiter.guard(cooldown_key, 1, self.policy.cooldown_seconds)
        self.rate_limiter.guard(throttle_key, self.policy.max_requests, self.policy.window_seconds)
        return cooldown_key

    def _issue_and_dispatch(
        self,
        db: Session,
        subject: OtpSubject,
        normalized: NormalizedPhone,
        cooldown_key: str,
    ) -> OtpRequestResult:
        issued = self.otp_service.issue(db, subject, normalized.country_phone_code_id)

        try:
            self.sms_dispatcher.send_otp(subject.phone, issued.code, self.otp_service.ttl_minutes)
        except SmsDeliveryError as e:
            logger.error(
                "Failed to send %s OTP via %s to %s: %s %s",
                subject.purpose,
                e.provider,
                subject.phone,
                e,
                e.diagnostics,
            )
            # The pending record stays; only the cooldown is released so the client can retry now
            self.rate_limiter.clear(cooldown_key)
            raise DeliveryFailed() from e

        preview = issued.code if self.expose_preview else None
        if preview is not None:
            logger.info("%s OTP generated for %s (preview %s)", subject.purpose, subject.phone, preview)
        else:
            logger.info("%s OTP generated for %s", subject.purpose, subject.phone)

        return OtpRequestResult(
            message=self.sent_message,
            expires_at=issued.expires_at,
            resend_available_in=max(0, self.rate_limiter.available_in(cooldown_key)),
            preview_code=preview,
        )

    def _finish_sign_in(self, db: Session, user: User) -> AuthResult:
        try:
            token = self.credential_issuer.issue(db, user, self.token_name)
        except Exception:
            db.rollback()
            raise
        db.commit()
        return AuthResult(token=token, user=user)


class LoginFlow(_OtpFlow):
    token_name = "mobile-otp"

    def _find_user(self, db: Session, phone: str) -> User:
        user = db.query(User).filter(User.phone == phone).first()
        if not user:
            raise AccountNotFound()
        return user

    def request_otp(
        self, db: Session, country_phone_code_id: Optional[int], phone: str
    ) -> OtpRequestResult:
        normalized = self._normalize(db, country_phone_code_id, phone)
        cooldown_key = self._guard(normalized.phone)
        user = self._find_user(db, normalized.phone)
        return self._issue_and_dispatch(db, OtpSubject.for_user(user), normalized, cooldown_key)

    def verify_otp(
        self, db: Session, country_phone_code_id: Optional[int], phone: str, otp: str
    ) -> AuthResult:
        normalized = self._normalize(db, country_phone_code_id, phone)
        user = self._find_user(db, normalized.phone)

        self.otp_service.verify(db, OtpSubject.for_user(user), otp, normalized.country_phone_code_id)

        now = self.clock()
        if user.phone_verified_at is None:
            user.phone_verified_at = now
        user.last_login_at = now

        return self._finish_sign_in(db, user)

    def logout(self, db: Session, token: Optional[str]) -> None:
        """Idempotent: missing, unknown or already revoked tokens are fine."""
        self.credential_issuer.revoke(db, token)


class RegistrationFlow(_OtpFlow):
    token_name = "mobile-registration"

    @staticmethod
    def _ensure_unregistered(db: Session, phone: str) -> None:
        if db.query(User.id).filter(User.phone == phone).first():
            raise PhoneAlreadyRegistered()

    def request_otp(
        self, db: Session, name: str, country_phone_code_id: Optional[int], phone: str
    ) -> OtpRequestResult:
        name = (name or "").strip()
        if not name:
            raise ValidationFailure("The name field is required.", field="name")

        normalized = self._normalize(db, country_phone_code_id, phone)
        self._ensure_unregistered(db, normalized.phone)
        cooldown_key = self._guard(normalized.phone)
        subject = OtpSubject.for_registration(normalized.phone, name=name)
        return self._issue_and_dispatch(db, subject, normalized, cooldown_key)

    def verify_otp(
        self, db: Session, country_phone_code_id: Optional[int], phone: str, otp: str
    ) -> AuthResult:
        normalized = self._normalize(db, country_phone_code_id, phone)
        # Someone may have registered this phone since the code was requested
        self._ensure_unregistered(db, normalized.phone)

        record = self.otp_service.verify(
            db, OtpSubject.for_registration(normalized.phone), otp, normalized.country_phone_code_id
        )

        now = self.clock()
        user = User(
            id=str(uuid4()),
            name=record.name,
            phone=record.phone,
            country_phone_code_id=record.country_phone_code_id or normalized.country_phone_code_id,
            email=build_placeholder_email(record.phone),
            password_hash=make_unusable_password_hash(rounds=self.password_hash_rounds),
            phone_verified_at=now,
            last_login_at=now,
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise PhoneAlreadyRegistered()

        return self._finish_sign_in(db, user)


def build_placeholder_email(phone: str) -> str:
    digits = strip_to_digits(phone) or uuid4().hex[:8]
    return f"{digits}@{PLACEHOLDER_EMAIL_DOMAIN}"
