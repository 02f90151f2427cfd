"""
OTP Service
Handles OTP generation, hashed storage, expiry, attempt limiting and consumption
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import uuid4

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from phone_auth.core.errors import AttemptsExceeded, CountryMismatch, InvalidOtp, NoActiveOtp, OtpExpired
from phone_auth.core.otp import generate_otp, hash_otp, verify_otp_hash
from phone_auth.core.timezone import get_utc_now
from phone_auth.models.otp_record import OtpRecord

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

LOGIN = "login"
REGISTRATION = "registration"


@dataclass(frozen=True)
class OtpSubject:
    """Who an OTP belongs to: an existing user (login) or a phone awaiting registration."""

    purpose: str
    key: str
    phone: str
    user_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def for_user(cls, user) -> "OtpSubject":
        return cls(purpose=LOGIN, key=user.id, phone=user.phone, user_id=user.id)

    @classmethod
    def for_registration(cls, phone: str, name: Optional[str] = None) -> "OtpSubject":
        return cls(purpose=REGISTRATION, key=phone, phone=phone, name=name)


@dataclass(frozen=True)
class IssuedOtp:
    code: str
    record: OtpRecord

    @property
    def expires_at(self) -> datetime:
        return self.record.expires_at


class OTPService:
    """
    Record lifecycle: Active -> Used (terminal), Active -> Active (failed
    attempt), Active -> Expired (computed from expires_at at verification).
    """

    def __init__(
        self,
        ttl_minutes: int = 5,
        max_attempts: int = 5,
        hash_rounds: int = 10,
        clock: Callable[[], datetime] = get_utc_now,
    ):
        self.ttl_minutes = ttl_minutes
        self.max_attempts = max_attempts
        self.hash_rounds = hash_rounds
        self.clock = clock

    @staticmethod
    def _subject_query(db: Session, subject: OtpSubject):
        return db.query(OtpRecord).filter(
            OtpRecord.purpose == subject.purpose,
            OtpRecord.subject_key == subject.key,
        )

    def issue(
        self,
        db: Session,
        subject: OtpSubject,
        country_phone_code_id: Optional[int] = None,
    ) -> IssuedOtp:
        """
        Replace every record of the subject with a fresh one.

        Returns:
            IssuedOtp with the plaintext code; only its bcrypt hash is stored.
        """
        self._subject_query(db, subject).delete(synchronize_session=False)

        otp = generate_otp()
        now = self.clock()
        record = OtpRecord(
            id=str(uuid4()),
            purpose=subject.purpose,
            subject_key=subject.key,
            user_id=subject.user_id,
            name=subject.name,
            phone=subject.phone,
            country_phone_code_id=country_phone_code_id,
            code_hash=hash_otp(otp, rounds=self.hash_rounds),
            expires_at=now + timedelta(minutes=self.ttl_minutes),
            attempts=0,
            used_at=None,
            created_at=now,
            updated_at=now,
        )
        db.add(record)
        db.commit()

        return IssuedOtp(code=otp, record=record)

    def verify(
        self,
        db: Session,
        subject: OtpSubject,
        otp_input: str,
        country_phone_code_id: Optional[int] = None,
    ) -> OtpRecord:
        """
        Check otp_input against the subject's latest unused record.

        Wrong guesses are committed before InvalidOtp is raised. On success
        the record is marked used and its siblings deleted, but nothing is
        committed: the caller commits together with its own account changes.
        """
        record = (
            self._subject_query(db, subject)
            .filter(OtpRecord.used_at.is_(None))
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .with_for_update()
            .first()
        )

        if not record:
            db.rollback()
            raise NoActiveOtp()

        now = self.clock()

        if record.has_expired(now):
            db.rollback()
            raise OtpExpired()

        if record.country_phone_code_id and record.country_phone_code_id != country_phone_code_id:
            db.rollback()
            raise CountryMismatch()

        if record.attempts >= self.max_attempts:
            db.rollback()
            raise AttemptsExceeded()

        if not verify_otp_hash(otp_input, record.code_hash):
            db.execute(
                update(OtpRecord)
                .where(
                    OtpRecord.id == record.id,
                    OtpRecord.used_at.is_(None),
                    OtpRecord.attempts < self.max_attempts,
                )
                .values(attempts=OtpRecord.attempts + 1, updated_at=now)
            )
            db.commit()
            logger.info("Invalid %s OTP attempt for %s", subject.purpose, subject.phone)
            raise InvalidOtp()

        # The consuming attempt counts too
        consumed = db.execute(
            update(OtpRecord)
            .where(
                OtpRecord.id == record.id,
                OtpRecord.used_at.is_(None),
                OtpRecord.attempts < self.max_attempts,
            )
            .values(used_at=now, attempts=OtpRecord.attempts + 1, updated_at=now)
        )
        if consumed.rowcount != 1:
            # Lost a race with a concurrent verification of the same record
            db.rollback()
            raise NoActiveOtp()

        self._subject_query(db, subject).filter(OtpRecord.id != record.id).delete(
            synchronize_session=False
        )
        db.refresh(record)
        return record

    def purge_expired(self, db: Session, grace_minutes: int = 60) -> int:
        """Delete records that expired or were consumed more than grace_minutes ago."""
        cutoff = self.clock() - timedelta(minutes=grace_minutes)
        deleted = (
            db.query(OtpRecord)
            .filter(or_(OtpRecord.expires_at < cutoff, OtpRecord.used_at < cutoff))
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Purged %s stale OTP records", deleted)
        return deleted
