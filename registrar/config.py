"""
Runtime configuration, read from ``REGISTRAR_``-prefixed environment variables
or a ``.env`` file.
"""

from typing import Any, Dict, Optional

from pydantic import Field, ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.exceptions import ConfigurationError


class Settings(BaseSettings):
    # ======================
    # Database
    # ======================
    DATABASE_TYPE: str = Field(default="sqlite", pattern=r"^(sqlite|postgresql)$")
    DATABASE_PATH: str = "registrar.db"
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "registrar"
    DATABASE_USER: str = "registrar"
    DATABASE_PASSWORD: str = ""

    # =========
    # Accounts
    # =========
    INSTITUTION_EMAIL_DOMAIN: str = "inst.edu"
    ADMIN_ACCESS_CODE: str = ""
    GRADUATION_CREDITS: int = Field(default=120, gt=0)

    # =========
    # Password hashing (argon2id)
    # =========
    PASSWORD_TIME_COST: int = Field(default=3, ge=1)
    PASSWORD_MEMORY_COST: int = Field(default=65536, ge=8)
    PASSWORD_PARALLELISM: int = Field(default=4, ge=1)

    # =========
    # App
    # =========
    LOG_LEVEL: str = "INFO"
    REST_HOST: str = "0.0.0.0"
    REST_PORT: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="REGISTRAR_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    def database_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``DatabaseFactory.create_database``."""
        if self.DATABASE_TYPE == "sqlite":
            return {"database_path": self.DATABASE_PATH}
        return {
            "host": self.DATABASE_HOST,
            "port": self.DATABASE_PORT,
            "database": self.DATABASE_NAME,
            "user": self.DATABASE_USER,
            "password": self.DATABASE_PASSWORD,
        }


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Build settings with ``overrides`` (keys in any case) layered over the environment."""
    values = {key.upper(): value for key, value in (overrides or {}).items()}
    try:
        return Settings(**values)
    except PydanticValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            details={"fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]},
        ) from e
