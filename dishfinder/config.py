"""
Configuration management for DishFinder
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "DishFinder"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./dishfinder.db"

    # Security
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Auth provider (OTP + Google OAuth)
    AUTH_PROVIDER_URL: str = "http://localhost:9999"
    AUTH_PROVIDER_API_KEY: str = ""
    OAUTH_REDIRECT_URL: str = "http://localhost:3000/auth/callback"

    # Blob storage for dish photos
    STORAGE_URL: str = "http://localhost:9998"
    STORAGE_BUCKET: str = "dish-photos"
    STORAGE_API_KEY: str = ""
    MAX_IMAGE_SIZE_MB: int = 5

    # Invites
    INVITE_CODES_PER_SIGNUP: int = 3

    # OTP throttling
    OTP_RATE_LIMIT_MAX: int = 3
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    REDIS_URL: str = ""  # empty = in-process counters

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
