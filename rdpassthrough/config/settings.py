from typing import Optional, Dict, Any, Tuple
from pydantic import ValidationInfo, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rdpassthrough.core.models import PipelineConfig
from rdpassthrough.utils.logger import addon_logger

# ===========================
# Pipeline Limit Bounds
# ===========================
LIMIT_BOUNDS: Dict[str, Tuple[int, int]] = {
    "TORRENT_LIMIT": (1, 50),
    "AVAILABILITY_CHECK_LIMIT": (5, 50),
    "MAX_STREAMS": (1, 20),
    "MAX_CONCURRENCY": (1, 10),
}


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    # ===========================
    # Addon Customization
    # ===========================
    ADDON_ID: str = "community.stremio.rd.passthrough"
    ADDON_NAME: str = "Real-Debrid Passthrough"
    ADDON_VERSION: str = "1.0.0"

    # ===========================
    # Server Configuration
    # ===========================
    PORT: int = 7000

    # ===========================
    # Upstream Services
    # ===========================
    RD_API_TOKEN: Optional[str] = ""
    REALDEBRID_API_URL: str = "https://api.real-debrid.com/rest/1.0"
    CINEMETA_URL: str = "https://v3-cinemeta.strem.io"
    TORRENTIO_URL: str = "https://torrentio.strem.fun"

    # ===========================
    # HTTP Timeout Configuration
    # ===========================
    HTTP_TIMEOUT: int = 15
    METADATA_TIMEOUT: int = 10
    TORRENT_SEARCH_TIMEOUT: int = 10
    DEBRID_HTTP_TIMEOUT: int = 10
    HEALTH_CHECK_TIMEOUT: int = 5

    # ===========================
    # Debrid Retry Configuration
    # ===========================
    DEBRID_HTTP_ERROR_MAX_RETRIES: int = 2
    DEBRID_HTTP_ERROR_RETRY_DELAY: float = 1.0

    # ===========================
    # Pipeline Limits
    # ===========================
    TORRENT_LIMIT: int = 15
    AVAILABILITY_CHECK_LIMIT: int = 15
    MAX_STREAMS: int = 5
    MAX_CONCURRENCY: int = 3
    STREAM_REQUEST_TIMEOUT: Optional[float] = None

    # ===========================
    # Readiness Polling
    # ===========================
    POLL_MAX_ATTEMPTS: int = 10
    POLL_INITIAL_DELAY: float = 0.5
    POLL_DELAY: float = 1.0

    # ===========================
    # Cache Configuration
    # ===========================
    METADATA_CACHE_TTL: int = 86400  # 24 hours
    TORRENT_SEARCH_CACHE_TTL: int = 21600  # 6 hours
    STREAM_CACHE_TTL: int = 1800  # 30 minutes
    CACHE_MAX_SIZE: int = 10000
    CACHE_STATS_INTERVAL: int = 600

    # ===========================
    # Proxy Configuration
    # ===========================
    PROXY_URL: Optional[str] = None

    # ===========================
    # Logging Configuration
    # ===========================
    LOG_LEVEL: Optional[str] = "INFO"

    # ===========================
    # Field Validators
    # ===========================
    @field_validator("REALDEBRID_API_URL", "CINEMETA_URL", "TORRENTIO_URL", "PROXY_URL")
    @classmethod
    def normalize_urls(cls, v):
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("RD_API_TOKEN")
    @classmethod
    def normalize_token(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator(*LIMIT_BOUNDS.keys(), mode="before")
    @classmethod
    def clamp_pipeline_limits(cls, v, info: ValidationInfo):
        default = cls.model_fields[info.field_name].default
        minimum, maximum = LIMIT_BOUNDS[info.field_name]

        try:
            value = int(v)
        except (TypeError, ValueError):
            addon_logger.warning(f"Invalid {info.field_name} value: {v!r}. Using default: {default}")
            return default

        if value < minimum or value > maximum:
            addon_logger.warning(
                f"Invalid {info.field_name} value: {value}. Must be between {minimum} and {maximum}. Using default: {default}"
            )
            return default

        return value

    @field_validator("STREAM_REQUEST_TIMEOUT", mode="before")
    @classmethod
    def empty_timeout_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    # ===========================
    # Computed Properties
    # ===========================
    @computed_field
    @property
    def ADDON_MANIFEST(self) -> Dict[str, Any]:
        return {
            "id": self.ADDON_ID,
            "version": self.ADDON_VERSION,
            "name": self.ADDON_NAME,
            "description": "Stream via Real-Debrid with passthrough (no downloads)",
            "resources": ["stream"],
            "types": ["movie", "series"],
            "catalogs": [],
            "idPrefixes": ["tt"],
            "behaviorHints": {
                "configurable": False,
                "configurationRequired": False
            },
            "background": "https://i.imgur.com/8VIqPYB.jpg",
            "logo": "https://i.imgur.com/8VIqPYB.jpg"
        }

    def has_debrid_token(self) -> bool:
        return bool(self.RD_API_TOKEN and self.RD_API_TOKEN.strip())

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            torrent_limit=self.TORRENT_LIMIT,
            availability_check_limit=self.AVAILABILITY_CHECK_LIMIT,
            max_streams=self.MAX_STREAMS,
            max_concurrency=self.MAX_CONCURRENCY,
            request_deadline=self.STREAM_REQUEST_TIMEOUT
        )


# ===========================
# Settings Instance
# ===========================
settings = Settings()
