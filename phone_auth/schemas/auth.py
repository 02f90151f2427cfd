from pydantic import BaseModel, Field, StringConstraints
from typing import Annotated, Optional

from phone_auth.core.timezone import to_iso8601


class OtpRequest(BaseModel):
    country_phone_code_id: Optional[int] = None
    phone: str = Field(..., min_length=4, max_length=20)


class RegistrationOtpRequest(OtpRequest):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class OtpVerifyRequest(OtpRequest):
    otp: str = Field(..., pattern=r"^[0-9]{6}$")


class OtpRequestResponse(BaseModel):
    message: str
    expires_at: str
    resend_available_in: int
    preview_code: Optional[str] = None


class UserSummary(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    country_phone_code_id: Optional[int] = None
    phone_verified_at: Optional[str] = None
    last_login_at: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "UserSummary":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            country_phone_code_id=user.country_phone_code_id,
            phone_verified_at=to_iso8601(user.phone_verified_at),
            last_login_at=to_iso8601(user.last_login_at),
        )


class AuthTokenResponse(BaseModel):
    token: str
    user: UserSummary


class MessageResponse(BaseModel):
    message: str
