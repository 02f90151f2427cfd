"""
Delete OTP records that expired or were consumed more than an hour ago.

Usage:
    python purge_otps.py [grace_minutes]
"""

import sys

from phone_auth.core.config import settings
from phone_auth.core.database import SessionLocal
from phone_auth.models import access_token, country_phone_code, otp_record, user  # noqa: F401
from phone_auth.services.otp_service import OTPService


def run(grace_minutes: int = 60):
    service = OTPService(ttl_minutes=settings.OTP_EXPIRY_MINUTES, max_attempts=settings.OTP_MAX_ATTEMPTS)
    db = SessionLocal()
    try:
        deleted = service.purge_expired(db, grace_minutes=grace_minutes)
        print(f"Purged {deleted} OTP records.")
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) > 2:
        print("Usage: python purge_otps.py [grace_minutes]")
        sys.exit(1)

    try:
        grace = int(sys.argv[1]) if len(sys.argv) == 2 else 60
    except ValueError:
        print("[ERROR] grace_minutes must be a number")
        sys.exit(1)

    run(grace)
