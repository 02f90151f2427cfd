import os
from datetime import datetime, timedelta
from uuid import uuid4

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PHONE_HASH_SALT", "test-salt")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("SMS_PROVIDER", "log")
os.environ.setdefault("OTP_HASH_ROUNDS", "4")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from phone_auth.core.config import settings  # noqa: E402
from phone_auth.core.database import Base, SessionLocal, engine  # noqa: E402
from phone_auth.core.deps import build_components  # noqa: E402
from phone_auth.core.errors import SmsDeliveryError  # noqa: E402
from phone_auth.core.rate_limit import InMemoryRateLimitStore  # noqa: E402
from phone_auth.core.security import make_unusable_password_hash  # noqa: E402
from phone_auth.core.timezone import get_utc_now  # noqa: E402
from phone_auth.main import create_app  # noqa: E402
from phone_auth.models import access_token, country_phone_code, otp_record  # noqa: E402,F401
from phone_auth.models.user import User  # noqa: E402
from phone_auth.services.phone_code_service import seed_phone_codes  # noqa: E402
from phone_auth.models.country_phone_code import CountryPhoneCode  # noqa: E402


class FakeClock:
    """Drives both the wall clock (OTP expiry) and the rate limiter's monotonic clock."""

    def __init__(self):
        self.now = get_utc_now()
        self.offset = 0.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.offset

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.offset += seconds


class RecordingSmsDispatcher:
    provider = "recording"

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_otp(self, phone, otp, ttl_minutes):
        self.send_message(phone, f"code {otp} ttl {ttl_minutes}")
        self.sent[-1]["otp"] = otp

    def send_message(self, phone, message):
        if self.fail:
            raise SmsDeliveryError("provider down", provider=self.provider, diagnostics={"status": 503})
        self.sent.append({"phone": phone, "message": message})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def phone_codes(db):
    seed_phone_codes(db)
    return {code.iso_code: code for code in db.query(CountryPhoneCode).all()}


@pytest.fixture
def sms():
    return RecordingSmsDispatcher()


@pytest.fixture
def make_components(clock, sms):
    def _make(**overrides):
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        return build_components(
            app_settings,
            rate_limit_store=InMemoryRateLimitStore(clock=clock.monotonic),
            sms_dispatcher=sms,
            login_sms_dispatcher=sms,
            clock=clock,
        )

    return _make


@pytest.fixture
def components(make_components):
    return make_components()


@pytest.fixture
def client(db, components):
    return TestClient(create_app(components))


@pytest.fixture
def make_user(db):
    def _make(phone="+8801712345678", name="Rahim Uddin", country_phone_code_id=None, **fields):
        user = User(
            id=str(uuid4()),
            name=name,
            email=f"{uuid4().hex[:10]}@example.com",
            phone=phone,
            country_phone_code_id=country_phone_code_id,
            password_hash=make_unusable_password_hash(rounds=4),
            **fields,
        )
        db.add(user)
        db.commit()
        return user

    return _make
