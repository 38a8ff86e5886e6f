"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MAPPING_PATH = str(Path(__file__).with_name("sip-mapping.json"))


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides.

    ``es_host`` is empty unless ``ES_HOST`` is set; an empty host means the
    index engine is not configured and searches go to the database directly.
    """

    es_host: str = _get_env("ES_HOST", "")
    es_port: int = int(_get_env("ES_PORT", "9200"))
    es_protocol: str = _get_env("ES_PROTOCOL", "http")
    es_api_key: str = _get_env("ES_API_KEY", "")
    es_index: str = _get_env("ES_INDEX", "sips")
    es_timeout_seconds: float = float(_get_env("ES_TIMEOUT_SECONDS", "5"))
    mapping_path: str = _get_env("MAPPING_PATH", DEFAULT_MAPPING_PATH)
    database_url: str = _get_env("DATABASE_URL", "sqlite:///./sips.db")
    default_page_size: int = int(_get_env("DEFAULT_PAGE_SIZE", "20"))
    max_page_size: int = int(_get_env("MAX_PAGE_SIZE", "100"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")

    @property
    def es_configured(self) -> bool:
        return bool(self.es_host.strip())

    @property
    def es_url(self) -> str:
        return f"{self.es_protocol}://{self.es_host}:{self.es_port}"


settings = Settings()
