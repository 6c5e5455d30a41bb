from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="tokenhub/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "TokenHub API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = "postgres"
    POSTGRES_SCHEMA: str = "public"

    # Full URL wins over POSTGRES_* when set (e.g. sqlite:// for tests)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            # Some hosts hand out postgres://, SQLAlchemy expects postgresql://
            if self.DATABASE_URL.startswith("postgres://"):
                return self.DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security (JWTs are issued by the external auth provider)
    SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"

    # Payment gateway
    NOWPAYMENTS_API_URL: str = "https://api.nowpayments.io/v1"
    NOWPAYMENTS_API_KEY: Optional[str] = None
    NOWPAYMENTS_IPN_SECRET: Optional[str] = None
    NOWPAYMENTS_TIMEOUT_SECONDS: float = 30.0
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Hub API mirror
    HUB_API_URL: Optional[str] = None
    HUB_API_SERVICE_ROLE_KEY: Optional[str] = None
    HUB_TIMEOUT_SECONDS: float = 10.0

    # Business Rules
    TOKENS_ACTIVATED_ON_ISSUE: bool = True

    @property
    def ipn_callback_url(self) -> str:
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}{self.API_V1_STR}/payments/ipn"


settings = Settings()
