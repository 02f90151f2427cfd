import secrets

import bcrypt

OTP_LENGTH = 6


def generate_otp() -> str:
    """Uniformly random 6-digit code, 000000-999999, zero padded."""
    return str(secrets.randbelow(10 ** OTP_LENGTH)).zfill(OTP_LENGTH)


def hash_otp(otp: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(otp.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_otp_hash(otp: str, otp_hash: str) -> bool:
    try:
        return bcrypt.checkpw(otp.encode("utf-8"), otp_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash never matches
        return False


def build_otp_message(otp: str, ttl_minutes: int) -> str:
    suffix = "" if ttl_minutes == 1 else "s"
    return f"Your verification code is {otp}. It expires in {ttl_minutes} minute{suffix}."
