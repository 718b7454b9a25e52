import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LISTY_")

    env: Env = Env.local
    database_url: str = "sqlite:///./listy.db"
    upload_dir: Path = Path("uploads")
    upload_url_prefix: str = "/uploads"
    max_upload_bytes: int = 4_500_000
    # used when a request carries no X-User header
    default_user: str = "demo@listy.local"
    log_level: str = "INFO"


@lru_cache
def get_config() -> Config:
    return Config()


def configure_logging(config: Config) -> None:
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
