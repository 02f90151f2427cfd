"""
Auth error taxonomy.

Every error is surfaced to the client as HTTP 422 with a field-scoped message:
    {"message": "...", "errors": {"<field>": ["..."]}}
"""

from typing import Optional


class AuthError(Exception):
    """Base exception for phone OTP auth failures."""

    field = "phone"
    default_message = "The given data was invalid."

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        if field is not None:
            self.field = field
        super().__init__(self.message)

    def to_errors(self) -> dict[str, list[str]]:
        return {self.field: [self.message]}


class ValidationFailure(AuthError):
    pass


class InvalidPhone(AuthError):
    default_message = "Please enter the rest of your mobile number."


class PhoneLengthOutOfRange(AuthError):
    def __init__(self, min_length: int, max_length: int):
        self.min_length = min_length
        self.max_length = max_length
        super().__init__(
            f"Enter between {min_length} and {max_length} digits for this country."
        )


class UnknownOrInactiveCountryRule(AuthError):
    field = "country_phone_code_id"
    default_message = "The selected country code is not available."


class RateLimited(AuthError):
    def __init__(self, retry_after: int):
        self.retry_after = max(0, int(retry_after))
        super().__init__(f"Too many attempts. Try again in {self.retry_after} seconds.")


class AccountNotFound(AuthError):
    default_message = "We could not find an account for that phone number."


class PhoneAlreadyRegistered(AuthError):
    default_message = "This phone number is already registered. Please sign in instead."


class NoActiveOtp(AuthError):
    field = "otp"
    default_message = "No active OTP found. Please request a new code."


class OtpExpired(AuthError):
    field = "otp"
    default_message = "The provided OTP has expired."


class CountryMismatch(AuthError):
    field = "country_phone_code_id"
    default_message = "Use the same country code you used when requesting the OTP."


class AttemptsExceeded(AuthError):
    field = "otp"
    default_message = "Maximum verification attempts exceeded. Please request a new OTP."


class InvalidOtp(AuthError):
    field = "otp"
    default_message = "Invalid OTP. Please try again."


class DeliveryFailed(AuthError):
    default_message = "We could not send the OTP right now. Please try again shortly."


class CredentialIssuanceFailure(AuthError):
    field = "token"
    default_message = "We could not sign you in right now. Please try again shortly."


class SmsDeliveryError(Exception):
    """Raised by SMS dispatchers; carries provider diagnostics for the logs only."""

    def __init__(self, message: str, provider: str, diagnostics: Optional[dict] = None):
        super().__init__(message)
        self.provider = provider
        self.diagnostics = diagnostics or {}
