import logging
from typing import Optional, Protocol

import boto3
import httpx
from botocore.config import Config as BotoConfig

from phone_auth.core.errors import SmsDeliveryError
from phone_auth.core.otp import build_otp_message

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
# httpx logs full request URLs at INFO; BulkSMS BD URLs carry the api key and the code
logging.getLogger("httpx").setLevel(logging.WARNING)

BANGLADESH_DIAL_CODE = "+880"


class SmsDispatcher(Protocol):
    def send_otp(self, phone: str, otp: str, ttl_minutes: int) -> None:
        ...

    def send_message(self, phone: str, message: str) -> None:
        ...


class _BaseDispatcher:
    provider = "base"

    def __init__(self, enabled: bool, allow_skip: bool):
        self.enabled = enabled
        # Development environments may run without a configured provider
        self.allow_skip = allow_skip

    def send_otp(self, phone: str, otp: str, ttl_minutes: int) -> None:
        self.send_message(phone, build_otp_message(otp, ttl_minutes))

    def send_message(self, phone: str, message: str) -> None:
        if not self.enabled:
            logger.info("%s SMS skipped: service disabled or not configured (%s)", self.provider, phone)
            if not self.allow_skip:
                raise SmsDeliveryError("SMS service is not configured.", provider=self.provider)
            return
        self._deliver(phone, message)

    def _deliver(self, phone: str, message: str) -> None:
        raise NotImplementedError


class LogSmsDispatcher:
    """Writes nothing but a log line; login codes in deployments without SMS."""

    provider = "log"

    def send_otp(self, phone: str, otp: str, ttl_minutes: int) -> None:
        logger.info("OTP delivery not configured for %s; skipping SMS", phone)

    def send_message(self, phone: str, message: str) -> None:
        logger.info("SMS delivery not configured for %s; skipping SMS", phone)


class AwsSnsSmsDispatcher(_BaseDispatcher):
    provider = "aws_sns"

    def __init__(
        self,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        sender_id: Optional[str] = None,
        sms_type: str = "Transactional",
        enabled: bool = False,
        allow_skip: bool = False,
        timeout: float = 15.0,
        client=None,
    ):
        super().__init__(
            enabled=enabled and bool(client or (access_key_id and secret_access_key)),
            allow_skip=allow_skip,
        )
        self.sender_id = sender_id
        self.sms_type = sms_type
        self.client = client
        if self.enabled and self.client is None:
            self.client = boto3.client(
                "sns",
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                config=BotoConfig(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"max_attempts": 1},
                ),
            )

    def _deliver(self, phone: str, message: str) -> None:
        attributes = {
            "AWS.SNS.SMS.SMSType": {"DataType": "String", "StringValue": self.sms_type},
        }
        if self.sender_id:
            attributes["AWS.SNS.SMS.SenderID"] = {"DataType": "String", "StringValue": self.sender_id}

        try:
            response = self.client.publish(
                PhoneNumber=phone,
                Message=message,
                MessageAttributes=attributes,
            )
        except Exception as e:
            raise SmsDeliveryError(
                "We could not deliver the SMS at this time.",
                provider=self.provider,
                diagnostics={"error": str(e), "type": type(e).__name__},
            ) from e

        logger.info("SNS SMS published to %s (message id %s)", phone, response.get("MessageId"))


class BulkSmsBdDispatcher(_BaseDispatcher):
    provider = "bulksmsbd"

    def __init__(
        self,
        api_key: Optional[str],
        sender_id: Optional[str],
        base_url: str = "https://bulksmsbd.net/api/smsapipush",
        message_type: str = "text",
        enabled: bool = False,
        allow_skip: bool = False,
        timeout: float = 15.0,
        http_client: Optional[httpx.Client] = None,
    ):
        super().__init__(enabled=enabled and bool(api_key) and bool(sender_id), allow_skip=allow_skip)
        self.api_key = api_key
        self.sender_id = sender_id
        self.base_url = base_url
        self.message_type = message_type
        self.timeout = timeout
        self.http_client = http_client

    @staticmethod
    def can_handle(phone: str) -> bool:
        return phone.startswith(BANGLADESH_DIAL_CODE)

    def _deliver(self, phone: str, message: str) -> None:
        params = {
            "api_key": self.api_key,
            "senderid": self.sender_id,
            "number": phone.lstrip("+"),
            "message": message,
            "type": self.message_type,
        }
        try:
            if self.http_client is not None:
                response = self.http_client.get(self.base_url, params=params, timeout=self.timeout)
            else:
                response = httpx.get(self.base_url, params=params, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise SmsDeliveryError(
                "BulkSMS BD request failed.",
                provider=self.provider,
                diagnostics={"error": str(e), "type": type(e).__name__},
            ) from e

        body = response.text.strip()
        if response.status_code >= 400:
            raise SmsDeliveryError(
                f"BulkSMS BD HTTP error: {response.status_code}",
                provider=self.provider,
                diagnostics={"status": response.status_code, "body": body},
            )
        if not self._indicates_success(body):
            raise SmsDeliveryError(
                "BulkSMS BD rejected the SMS.",
                provider=self.provider,
                diagnostics={"status": response.status_code, "body": body},
            )

        logger.info("BulkSMS BD accepted SMS for %s", phone)

    @staticmethod
    def _indicates_success(body: str) -> bool:
        if not body:
            return False
        return "202" in body or "success" in body.lower()


class CountryRoutingSmsDispatcher:
    """BulkSMS BD for Bangladeshi numbers when it is enabled, the fallback for the rest."""

    provider = "auto"

    def __init__(self, local: BulkSmsBdDispatcher, fallback: SmsDispatcher):
        self.local = local
        self.fallback = fallback

    def _pick(self, phone: str):
        if self.local.enabled and self.local.can_handle(phone):
            return self.local
        return self.fallback

    def send_otp(self, phone: str, otp: str, ttl_minutes: int) -> None:
        self._pick(phone).send_otp(phone, otp, ttl_minutes)

    def send_message(self, phone: str, message: str) -> None:
        self._pick(phone).send_message(phone, message)


def build_sms_dispatcher(settings) -> SmsDispatcher:
    mode = (settings.SMS_PROVIDER or "log").lower()
    allow_skip = settings.is_development

    def _sns():
        return AwsSnsSmsDispatcher(
            region=settings.AWS_SNS_REGION,
            access_key_id=settings.AWS_SNS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SNS_SECRET_ACCESS_KEY,
            sender_id=settings.AWS_SNS_SENDER_ID,
            sms_type=settings.AWS_SNS_SMS_TYPE,
            enabled=settings.AWS_SNS_ENABLED,
            allow_skip=allow_skip,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )

    def _bulksmsbd():
        return BulkSmsBdDispatcher(
            api_key=settings.BULKSMSBD_API_KEY,
            sender_id=settings.BULKSMSBD_SENDER_ID,
            base_url=settings.BULKSMSBD_BASE_URL,
            message_type=settings.BULKSMSBD_TYPE,
            enabled=settings.BULKSMSBD_ENABLED,
            allow_skip=allow_skip,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )

    if mode == "sns":
        return _sns()
    if mode == "bulksmsbd":
        return _bulksmsbd()
    if mode == "auto":
        return CountryRoutingSmsDispatcher(local=_bulksmsbd(), fallback=_sns())
    if mode == "log":
        return LogSmsDispatcher()
    raise RuntimeError(f"Unsupported SMS_PROVIDER '{mode}'")
