from functools import lru_cache

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from jobledger.core.errors import ConfigurationError

DEFAULT_MYSQL_PORT = 3306


class Settings(BaseSettings):
    """Ledger settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    mysql_host: str = Field(default="localhost")
    mysql_port: int = Field(default=DEFAULT_MYSQL_PORT)
    mysql_database: str = Field(default="")
    mysql_user: str = Field(default="")
    mysql_password: str = Field(default="")
    database_url: str = Field(default="")  # Full SQLAlchemy URL, overrides MYSQL_*

    # Connection pool
    pool_size: int = Field(default=5, ge=1)
    pool_max_overflow: int = Field(default=10, ge=0)
    pool_timeout: float = Field(default=30.0, gt=0)
    pool_recycle: int = Field(default=280)
    query_timeout: float | None = Field(default=None, gt=0)

    # Migrations
    migration_lock_timeout: int = Field(default=30, ge=0)

    # Application
    debug: bool = Field(default=False)

    @field_validator("mysql_port", mode="before")
    @classmethod
    def _port_or_default(cls, value: object) -> int:
        try:
            return int(str(value))
        except ValueError:
            return DEFAULT_MYSQL_PORT

    @model_validator(mode="after")
    def _require_credentials(self) -> "Settings":
        if self.database_url:
            return self
        missing = [
            name.upper()
            for name in ("mysql_database", "mysql_user", "mysql_password")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Missing env {', '.join(missing)}")
        return self

    @property
    def sqlalchemy_url(self) -> URL | str:
        """URL handed to the connection pool."""
        if self.database_url:
            return self.database_url
        return URL.create(
            "mysql+aiomysql",
            username=self.mysql_user,
            password=self.mysql_password,
            host=self.mysql_host,
            port=self.mysql_port,
            database=self.mysql_database,
            query={"charset": "utf8mb4"},
        )


def load_settings(**overrides: object) -> Settings:
    """
    Build settings from the environment.

    Raises:
        ConfigurationError: If required values are missing or invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
