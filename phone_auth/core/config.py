from pydantic_settings import BaseSettings
from typing import Literal, Optional

DEVELOPMENT_ENVIRONMENTS = ("local", "testing")


class Settings(BaseSettings):
    APP_ENV: str = "production"

    DATABASE_URL: str
    PHONE_HASH_SALT: str
    JWT_SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24 * 30

    OTP_EXPIRY_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 5
    OTP_HASH_ROUNDS: int = 10

    # Resend cooldown (single slot) and abuse throttle (multi slot) per flow
    LOGIN_RESEND_COOLDOWN_SECONDS: int = 30
    LOGIN_REQUEST_RATE_LIMIT: int = 3
    LOGIN_REQUEST_RATE_LIMIT_DECAY: int = 300
    REGISTER_RESEND_COOLDOWN_SECONDS: int = 45
    REGISTER_REQUEST_RATE_LIMIT: int = 5
    REGISTER_REQUEST_RATE_LIMIT_DECAY: int = 900

    PHONE_NORMALIZER: Literal["rule_based", "pattern_based"] = "rule_based"

    # Redis Configuration
    RATE_LIMIT_BACKEND: Literal["redis", "memory"] = "redis"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0

    # SMS delivery
    SMS_PROVIDER: Literal["sns", "bulksmsbd", "auto", "log"] = "sns"
    LOGIN_SMS_ENABLED: bool = False
    SMS_TIMEOUT_SECONDS: float = 15.0

    AWS_SNS_ENABLED: bool = False
    AWS_SNS_REGION: str = "us-east-1"
    AWS_SNS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SNS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SNS_SENDER_ID: Optional[str] = None
    AWS_SNS_SMS_TYPE: str = "Transactional"

    BULKSMSBD_ENABLED: bool = False
    BULKSMSBD_API_KEY: Optional[str] = None
    BULKSMSBD_SENDER_ID: Optional[str] = None
    BULKSMSBD_BASE_URL: str = "https://bulksmsbd.net/api/smsapipush"
    BULKSMSBD_TYPE: str = "text"

    # Comma-separated, e.g. "https://app.example.com,https://admin.example.com"
    CORS_ORIGINS: str = ""

    class Config:
        env_file = ".env"

    @property
    def is_development(self) -> bool:
        """Only local and testing environments may reveal OTP codes"""
        return self.APP_ENV in DEVELOPMENT_ENVIRONMENTS

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

settings = Settings()
