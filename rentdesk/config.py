from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str = "sqlite:///./rentdesk.db"
    JWT_ISS: str = "rentdesk"
    JWT_EXP_MIN: int = 12*60
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str | None = None

    # booking / receiving rules
    BOOKING_EXPIRATION_HOURS: int = 24
    DAILY_BOOKING_CAPACITY: int = 10
    RECEIPT_TOLERANCE_PERCENT: float = 0.5

    # collaborators; unset means local fallback
    PAYMENT_URL: str | None = None
    RESERVATION_URL: str | None = None
    NOTIFY_URL: str | None = None
    HTTP_TIMEOUT: float = 5.0
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
