from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from phone_auth.core.auth import CredentialIssuer
from phone_auth.core.database import get_db
from phone_auth.core.phone import build_phone_normalizer
from phone_auth.core.rate_limit import InMemoryRateLimitStore, RateLimiter, RateLimitStore
from phone_auth.core.redis import RedisRateLimitStore
from phone_auth.core.sms import LogSmsDispatcher, SmsDispatcher, build_sms_dispatcher
from phone_auth.core.timezone import get_utc_now
from phone_auth.models.user import User
from phone_auth.services.auth_flow import LoginFlow, OtpRequestPolicy, RegistrationFlow
from phone_auth.services.otp_service import OTPService, LOGIN, REGISTRATION

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthComponents:
    login_flow: LoginFlow
    registration_flow: RegistrationFlow
    credential_issuer: CredentialIssuer
    rate_limiter: RateLimiter
    otp_service: OTPService


def build_rate_limit_store(settings) -> RateLimitStore:
    if settings.RATE_LIMIT_BACKEND == "memory":
        return InMemoryRateLimitStore()
    return RedisRateLimitStore()


def build_components(
    settings,
    rate_limit_store: Optional[RateLimitStore] = None,
    sms_dispatcher: Optional[SmsDispatcher] = None,
    login_sms_dispatcher: Optional[SmsDispatcher] = None,
    clock=get_utc_now,
) -> AuthComponents:
    """Wire the flows once per application; every collaborator is passed in explicitly."""
    rate_limiter = RateLimiter(rate_limit_store or build_rate_limit_store(settings))
    otp_service = OTPService(
        ttl_minutes=settings.OTP_EXPIRY_MINUTES,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        hash_rounds=settings.OTP_HASH_ROUNDS,
        clock=clock,
    )
    credential_issuer = CredentialIssuer(
        secret_key=settings.JWT_SECRET_KEY,
        expire_hours=settings.ACCESS_TOKEN_EXPIRE_HOURS,
        clock=clock,
    )
    normalizer = build_phone_normalizer(settings.PHONE_NORMALIZER)

    registration_dispatcher = sms_dispatcher or build_sms_dispatcher(settings)
    if login_sms_dispatcher is None:
        login_sms_dispatcher = registration_dispatcher if settings.LOGIN_SMS_ENABLED else LogSmsDispatcher()

    shared = dict(
        normalizer=normalizer,
        rate_limiter=rate_limiter,
        otp_service=otp_service,
        credential_issuer=credential_issuer,
        phone_hash_salt=settings.PHONE_HASH_SALT,
        expose_preview=settings.is_development,
        password_hash_rounds=settings.OTP_HASH_ROUNDS,
        clock=clock,
    )

    login_flow = LoginFlow(
        sms_dispatcher=login_sms_dispatcher,
        policy=OtpRequestPolicy(
            purpose=LOGIN,
            cooldown_seconds=settings.LOGIN_RESEND_COOLDOWN_SECONDS,
            max_requests=settings.LOGIN_REQUEST_RATE_LIMIT,
            window_seconds=settings.LOGIN_REQUEST_RATE_LIMIT_DECAY,
        ),
        **shared,
    )
    registration_flow = RegistrationFlow(
        sms_dispatcher=registration_dispatcher,
        policy=OtpRequestPolicy(
            purpose=REGISTRATION,
            cooldown_seconds=settings.REGISTER_RESEND_COOLDOWN_SECONDS,
            max_requests=settings.REGISTER_REQUEST_RATE_LIMIT,
            window_seconds=settings.REGISTER_REQUEST_RATE_LIMIT_DECAY,
        ),
        **shared,
    )

    return AuthComponents(
        login_flow=login_flow,
        registration_flow=registration_flow,
        credential_issuer=credential_issuer,
        rate_limiter=rate_limiter,
        otp_service=otp_service,
    )


def get_components(request: Request) -> AuthComponents:
    return request.app.state.auth_components


def get_login_flow(components: AuthComponents = Depends(get_components)) -> LoginFlow:
    return components.login_flow


def get_registration_flow(components: AuthComponents = Depends(get_components)) -> RegistrationFlow:
    return components.registration_flow


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    components: AuthComponents = Depends(get_components),
) -> User:
    user = components.credential_issuer.authenticate(db, token) if token else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
