from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Asia/Ho_Chi_Minh", alias="TIMEZONE")

    postgres_db: str = Field(default="sportbook", alias="POSTGRES_DB")
    postgres_user: str = Field(default="sportbook", alias="POSTGRES_USER")
    postgres_password: str = Field(default="sportbook", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    database_url: str = Field(default="", alias="DATABASE_URL")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")

    payment_provider: str = Field(default="stub", alias="PAYMENT_PROVIDER")
    payment_currency: str = Field(default="VND", alias="PAYMENT_CURRENCY")
    payment_return_url: str = Field(default="http://localhost", alias="PAYMENT_RETURN_URL")
    payment_checkout_base_url: str = Field(
        default="http://localhost/checkout", alias="PAYMENT_CHECKOUT_BASE_URL"
    )
    payment_expiration_minutes: int = Field(default=5, alias="PAYMENT_EXPIRATION_MINUTES")

    platform_fee_percent: int = Field(default=5, alias="PLATFORM_FEE_PERCENT")
    reservation_max_retries: int = Field(default=3, alias="RESERVATION_MAX_RETRIES")
    transaction_timeout_seconds: float = Field(default=15.0, alias="TRANSACTION_TIMEOUT_SECONDS")
    availability_max_days: int = Field(default=30, alias="AVAILABILITY_MAX_DAYS")
    batch_max_days: int = Field(default=31, alias="BATCH_MAX_DAYS")

    notification_webhook_url: str = Field(default="", alias="NOTIFICATION_WEBHOOK_URL")

    booking_rate_limit: int = Field(default=10, alias="BOOKING_RATE_LIMIT")
    booking_rate_window_seconds: int = Field(default=60, alias="BOOKING_RATE_WINDOW_SECONDS")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
