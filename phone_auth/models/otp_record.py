from sqlalchemy import Column, String, Text, Integer, DateTime, Enum, ForeignKey, Index
from phone_auth.core.database import Base
from phone_auth.core.timezone import get_utc_now

OTP_PURPOSES = ("login", "registration")

class OtpRecord(Base):
    """
    One pending or consumed verification attempt.

    subject_key is the user id for login codes and the canonical phone for
    registration codes; name carries the pending registration payload.
    """

    __tablename__ = "otp_records"

    id = Column(String(36), primary_key=True)
    purpose = Column(Enum(*OTP_PURPOSES, name="otp_purpose_enum"), nullable=False)
    subject_key = Column(String(64), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(255))
    phone = Column(String(32), nullable=False)
    country_phone_code_id = Column(
        Integer, ForeignKey("country_phone_codes.id", ondelete="SET NULL"), nullable=True
    )
    code_hash = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    used_at = Column(DateTime)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)

    __table_args__ = (
        Index("ix_otp_records_purpose_subject", "purpose", "subject_key"),
        Index("ix_otp_records_expires_at", "expires_at"),
    )

    def has_expired(self, now) -> bool:
        return self.expires_at is None or now > self.expires_at
