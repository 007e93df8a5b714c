# clinicdocs/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    APP_NAME: str = "Clinic Docs API"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # DATABASE_URL gana sobre los DB_* (tests usan sqlite+aiosqlite)
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "clinicdocs"
    DB_PASSWORD: str = ""
    DB_NAME: str = "clinicdocs"

    # clave HMAC del payload del QR
    DOCUMENT_SIGNING_KEY: str = Field(...)
    VERIFY_CODE_LENGTH: int = 8
    VERIFY_CODE_MAX_ATTEMPTS: int = 5
    PRESCRIPTION_VALID_DAYS: int = 30

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")


settings = Settings()  # type: ignore[call-arg]
