from typing import Optional, Dict, Any, Union
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, PostgresDsn, field_validator
from pathlib import Path

# Root directory of the campus_feed package
SERVICE_ROOT_DIR = Path(__file__).parent.parent.resolve()
# Repository root (one level above the package)
PROJECT_ROOT_DIR = SERVICE_ROOT_DIR.parent


def _split_csv(value: Union[str, list[str]]) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(',') if item.strip()]
    return value


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "CampusFeedService"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8002

    # Security settings
    ALLOWED_HOSTS: Union[str, list[str]] = "*"
    CORS_ORIGINS: Union[str, list[str]] = "http://localhost:8081,http://localhost:19006"
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: Union[str, list[str]] = "GET,POST,DELETE"
    CORS_ALLOW_HEADERS: Union[str, list[str]] = "*"

    # Database settings
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "user"
    DB_PASSWORD: str = "password"
    DB_NAME: str = "campus_feed"
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)

    @field_validator("DATABASE_URL", mode='before')
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], values: Dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v
        db_name = values.data.get("DB_NAME")
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=values.data.get("DB_USER"),
            password=values.data.get("DB_PASSWORD"),
            host=values.data.get("DB_HOST"),
            port=values.data.get("DB_PORT"),
            path=db_name or '',
        ))

    def model_post_init(self, __context) -> None:
        """Parse comma-separated strings into lists after model initialization."""
        self.ALLOWED_HOSTS = _split_csv(self.ALLOWED_HOSTS)
        self.CORS_ORIGINS = _split_csv(self.CORS_ORIGINS)
        self.CORS_ALLOW_METHODS = _split_csv(self.CORS_ALLOW_METHODS)
        if self.CORS_ALLOW_HEADERS == "*":
            self.CORS_ALLOW_HEADERS = ["*"]
        else:
            self.CORS_ALLOW_HEADERS = _split_csv(self.CORS_ALLOW_HEADERS)

    # Logging configuration path (can be overridden by env var)
    LOGGING_CONFIG_PATH: str = str(SERVICE_ROOT_DIR / "config" / "logging_config.yaml")

    # Feed settings
    FEED_FETCH_LIMIT: int = 50  # rows per source per load
    FEED_PAGE_SIZE: int = 20
    FEED_MAX_PAGE_SIZE: int = 100

    # Comment settings
    COMMENT_MAX_REPLY_DEPTH: int = 3
    COMMENT_MAX_LENGTH: int = 2000

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT_DIR / ".env"),
        env_file_encoding='utf-8',
        extra='ignore'
    )


# Instantiate settings
settings = Settings()
