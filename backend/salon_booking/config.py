"""
Application configuration
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./salon_booking.db"

    # Security (bearer tokens issued by the identity provider)
    SECRET_KEY: str = "local-development-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Telegram chat of the salon staff (booking notifications)
    TELEGRAM_SALON_BOT_TOKEN: Optional[str] = None
    TELEGRAM_SALON_CHAT_ID: Optional[str] = None

    # Email (client notifications)
    SMTP_HOST: Optional[str] = None  # smtp.gmail.com
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_NAME: str = "Salon Booking"
    SMTP_FROM_EMAIL: Optional[str] = None  # falls back to SMTP_USER
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    # Admin Panel
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "change-me"

    # Booking Settings
    # Stride between offered start times. Independent of the service
    # duration: a 45 minute service is still offered every 30 minutes.
    SLOT_STEP_MINUTES: int = 30
    BOOKING_DAYS_AHEAD: int = 30

    # Development
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    SITE_URL: str = "http://localhost:8000"

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Application settings (cached)"""
    return Settings()
