import hashlib
import secrets

import bcrypt


def hash_phone(phone: str, salt: str) -> str:
    return hashlib.sha256(
        f"{phone}{salt}".encode()
    ).hexdigest()


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def make_unusable_password_hash(rounds: int = 12) -> str:
    """Hash of a random secret nobody ever sees; accounts created by OTP have no password."""
    return hash_password(secrets.token_urlsafe(32), rounds=rounds)
