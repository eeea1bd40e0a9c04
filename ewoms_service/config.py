"""
Configuration management for the e-woms service
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Service configuration loaded from environment variables"""

    # Server Configuration
    APP_NAME: str = "e-woms"
    APP_VERSION: str = "v1.0.11"
    RUN_MODE: str = "dev"
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "DEBUG"
    LOG_DIR: str = "logs"

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./ewoms.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Redis Configuration
    REDIS_URL: str = "redis://localhost:6379/0"

    # JWT Configuration
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_HOURS: int = 365 * 24

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]

    # Admin panel access
    IP_WHITELIST_ENABLED: bool = False
    IP_WHITELIST_MANAGE_KEY: str = ""
    ADMIN_TOTP_REQUIRED: bool = False
    ADMIN_BOOTSTRAP_USERNAME: str = ""
    ADMIN_BOOTSTRAP_PASSWORD: str = ""
    ADMIN_BOOTSTRAP_EMAIL: str = ""

    # Mail Configuration
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_SENDER_NAME: str = "no-reply"
    MAIL_SUBJECT: str = "验证码通知"

    # Email verification codes
    EMAIL_CODE_EXPIRE_SECONDS: int = 300
    EMAIL_CODE_LOCK_SECONDS: int = 10
    EMAIL_CODE_BYPASS: str = "aaabbb"

    # iOS in-app purchase
    IOS_IAP_SHARED_SECRET: str = ""
    IOS_VERIFY_TIMEOUT_SECONDS: float = 12.0
    IOS_VERIFY_PRODUCTION_URL: str = "https://buy.itunes.apple.com/verifyReceipt"
    IOS_VERIFY_SANDBOX_URL: str = "https://sandbox.itunes.apple.com/verifyReceipt"

    # Upload Configuration
    UPLOAD_DIR: str = "static/upload"
    UPLOAD_MAX_SIZE: int = 20 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @property
    def is_dev_mode(self) -> bool:
        return self.RUN_MODE.lower() == "dev"

    @property
    def is_local_env(self) -> bool:
        return self.ENVIRONMENT.lower() in ("local", "development", "dev")


# Global settings instance
settings = Settings()
