"""
deferring/config.py

Settings read from the environment (prefix ``DEFERRING_``) or a ``.env`` file.
"""
import logging
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Library settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./deferring.db"
    SQL_ECHO: bool = False

    # Separator used by set_identifiers() for the textual id form ("1,2,3")
    ID_DELIMITER: str = ","

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(env_prefix="DEFERRING_", env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()


def setup_logging(level: Optional[str] = None) -> None:
    """Setup logging configuration"""
    level = level or settings.LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


__all__ = ["Settings", "settings", "setup_logging"]
