from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Environment setting
    ENVIRONMENT: str = Field(
        "development", description="Environment: development, testing, production"
    )

    # API settings
    API_PREFIX: str = Field("")
    DEBUG: bool = Field(False)
    ALLOWED_ORIGINS: str = Field("*")

    # Database settings
    DB_HOST: str = Field("localhost")
    DB_PORT: int = Field(5432)
    DB_USER: str = Field("")
    DB_PASSWORD: str = Field("")
    DB_NAME: str = Field("prescriptions")
    DB_DRIVER: str = Field("postgresql+asyncpg")

    SQLITE_MODE: bool = True
    CREATE_TABLES_ON_STARTUP: bool = Field(
        True, description="Create missing tables when the app starts"
    )

    # Logging
    LOG_LEVEL: str = Field("INFO")
    LOG_FILE: str = Field("", description="Optional file for complete logs")

    # Uvicorn settings
    UVICORN_HOST: str = Field("127.0.0.1")
    UVICORN_PORT: int = Field(8000)
    WORKERS_COUNT: int = Field(1)
    RELOAD: bool = Field(False)

    @property
    def POSTGRESQL_DATABASE_URL(self) -> str:
        return (
            f"{self.DB_DRIVER}://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def SQLITE_DATABASE_URL(self) -> str:
        return f"sqlite+aiosqlite:///{self.DB_NAME}.db"

    @property
    def DATABASE_URL(self) -> str:
        return (
            self.SQLITE_DATABASE_URL
            if self.SQLITE_MODE
            else self.POSTGRESQL_DATABASE_URL
        )

    @field_validator("ALLOWED_ORIGINS")
    def validate_origins(cls, v: str) -> List[str]:
        return v.split(",") if v else []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
