import json
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")


class RedisConfig(BaseModel):
    url: Optional[str] = Field(default=None, description="Redis connection URL (None disables Redis)")
    socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")


class RateLimitConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable rate limiting")
    max_requests: int = Field(default=10, ge=1, description="Max requests per window")
    window_seconds: int = Field(default=60, ge=1, description="Rate limit window in seconds")


class HttpConfig(BaseModel):
    timeout_seconds: Optional[float] = Field(default=None, description="Outbound timeout (None keeps the httpx default)")
    max_redirects: int = Field(default=5, ge=0, description="Redirect hops followed per page fetch")


class ResolverConfig(BaseModel):
    platform_domains: List[str] = Field(
        default=["kuaishou.com", "kwai.com", "chenzhongtech.com"],
        description="Hosts (and their subdomains) accepted as page URLs",
    )
    default_title: str = Field(default="Kuaishou Video", description="Title used when none is found")
    default_author: str = Field(default="Unknown", description="Author used when none is found")
    quality_label: str = Field(default="720p", description="Quality label reported for resolved media")


class RelayConfig(BaseModel):
    chunk_size: int = Field(default=64 * 1024, ge=1024, description="Relay chunk size in bytes")
    video_filename: str = Field(default="kuaishou-video.mp4", description="Attachment filename for video")
    audio_filename: str = Field(default="kuaishou-audio.m4a", description="Attachment filename for audio")


class SecurityConfig(BaseModel):
    enable_ssrf_protection: bool = Field(default=True, description="Enable SSRF protection")
    allow_private_ips: bool = Field(default=False, description="Allow private IP ranges")
    allow_localhost: bool = Field(default=False, description="Allow localhost access")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "zh"], description="Supported locales")


class ApiConfig(BaseModel):
    title: str = Field(default="Kuaishou Downloader API", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")


class Config(BaseSettings):
    """Main configuration model"""
    model_config = SettingsConfigDict(env_prefix="KSDL_", env_nested_delimiter="__")

    redis: RedisConfig = Field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def load_from_file(cls, config_path: str = "config.json") -> "Config":
        """Load configuration from JSON file"""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
            logger.info(f"Configuration loaded from {config_path}")
            return cls(**config_data)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config from {config_path}: {str(e)}")
            logger.info("Using environment/default configuration")
        return cls()

    def save_to_file(self, config_path: str = "config.json"):
        """Save configuration to JSON file"""
        try:
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            logger.info(f"Configuration saved to {config_path}")
        except OSError as e:
            logger.error(f"Failed to save config to {config_path}: {str(e)}")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def load_config() -> Config:
    """Load configuration with priority: config.json > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)
    return Config()


config = load_config()
