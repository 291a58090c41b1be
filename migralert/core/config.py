"""
Application settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Optional


DEFAULT_ALERT_MESSAGE = (
    "I may have been detained by immigration authorities. "
    "Please contact a lawyer immediately."
)


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "MigrAlert"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    APP_NAME: str = "MIGRALERT"

    # Database
    DATABASE_URL: str

    # Security (tokens are issued by the identity provider with this secret)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Reports
    REPORT_LIFETIME_HOURS: int = 12
    REPORT_DESCRIPTION_MAX_LENGTH: int = 500
    DEFAULT_RADIUS_MILES: float = 25.0
    MAX_RADIUS_MILES: float = 500.0

    # Confidence scoring
    SCORE_PHOTO_INITIAL: int = 70
    SCORE_NO_PHOTO_INITIAL: int = 40
    SCORE_CONFIRM_PCT: int = 25   # % of the headroom up to 100
    SCORE_INACTIVE_PCT: int = 15  # % of the current score
    SCORE_FALSE_PCT: int = 35     # % of the current score
    VERIFY_SCORE_THRESHOLD: int = 85
    VERIFY_MIN_CONFIRMATIONS: int = 3
    REMOVE_SCORE_THRESHOLD: int = 10
    SCORE_UPDATE_MAX_RETRIES: int = 5
    IP_HASH_SALT: str = ""

    # External APIs
    MAPBOX_ACCESS_TOKEN: str = ""
    GEOCODE_TIMEOUT_SECONDS: float = 5.0

    # File Upload
    MAX_UPLOAD_SIZE: int = 10485760  # 10MB
    UPLOAD_FOLDER: str = "static/uploads/reports"
    UPLOAD_URL_PREFIX: str = "/static/uploads/reports"
    IMAGE_MAX_WIDTH: int = 1200
    IMAGE_QUALITY: int = 80
    IMAGE_COMPRESS_TIMEOUT_SECONDS: float = 10.0

    # SMS
    SMS_BACKEND: str = "twilio"  # 'twilio', 'console'
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None
    TWILIO_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Emergency alerts
    MAX_EMERGENCY_CONTACTS: int = 5
    DEFAULT_ALERT_MESSAGE: str = DEFAULT_ALERT_MESSAGE
    ALERT_HISTORY_DEFAULT_LIMIT: int = 10
    PANIC_HOLD_SECONDS: float = 3.0
    PANIC_TICK_SECONDS: float = 0.05

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=True
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
