import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from phone_auth.core.database import get_db
from phone_auth.core.deps import get_bearer_token, get_login_flow, get_registration_flow
from phone_auth.core.timezone import to_iso8601
from phone_auth.schemas.auth import (
    AuthTokenResponse,
    MessageResponse,
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    RegistrationOtpRequest,
    UserSummary,
)
from phone_auth.services.auth_flow import AuthResult, LoginFlow, OtpRequestResult, RegistrationFlow

router = APIRouter(prefix="/auth", tags=["auth"])

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _otp_response(result: OtpRequestResult) -> OtpRequestResponse:
    return OtpRequestResponse(
        message=result.message,
        expires_at=to_iso8601(result.expires_at),
        resend_available_in=result.resend_available_in,
        preview_code=result.preview_code,
    )


def _token_response(result: AuthResult) -> AuthTokenResponse:
    return AuthTokenResponse(token=result.token, user=UserSummary.from_user(result.user))


@router.post("/request-otp", response_model=OtpRequestResponse)
def request_otp(
    payload: OtpRequest,
    db: Session = Depends(get_db),
    flow: LoginFlow = Depends(get_login_flow),
):
    result = flow.request_otp(db, payload.country_phone_code_id, payload.phone)
    return _otp_response(result)


@router.post("/verify-otp", response_model=AuthTokenResponse)
def verify_otp(
    payload: OtpVerifyRequest,
    db: Session = Depends(get_db),
    flow: LoginFlow = Depends(get_login_flow),
):
    result = flow.verify_otp(db, payload.country_phone_code_id, payload.phone, payload.otp)
    logger.info("User %s signed in with OTP", result.user.id)
    return _token_response(result)


@router.post("/register/request-otp", response_model=OtpRequestResponse)
def register_request_otp(
    payload: RegistrationOtpRequest,
    db: Session = Depends(get_db),
    flow: RegistrationFlow = Depends(get_registration_flow),
):
    result = flow.request_otp(db, payload.name, payload.country_phone_code_id, payload.phone)
    return _otp_response(result)


@router.post("/register/verify-otp", response_model=AuthTokenResponse)
def register_verify_otp(
    payload: OtpVerifyRequest,
    db: Session = Depends(get_db),
    flow: RegistrationFlow = Depends(get_registration_flow),
):
    result = flow.verify_otp(db, payload.country_phone_code_id, payload.phone, payload.otp)
    logger.info("User %s registered with OTP", result.user.id)
    return _token_response(result)


@router.post("/logout", response_model=MessageResponse)
def logout(
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    flow: LoginFlow = Depends(get_login_flow),
):
    flow.logout(db, token)
    return MessageResponse(message="Logged out successfully.")
