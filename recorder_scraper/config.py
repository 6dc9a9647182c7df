"""Runtime settings read from environment variables (and a .env file)."""

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError

DEFAULT_SITE = "chatham_nc"
DEFAULT_LLM_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_LLM_MODEL = "deepseek-chat"


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    value = _env_str(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if parsed < 0:
        raise ConfigError(f"{name} must not be negative, got {value!r}")
    return parsed


def _env_bool(name: str, default: bool) -> bool:
    value = _env_str(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class Settings:
    """
    Process-wide settings for the scraper.

    Every timeout is in seconds and enforced independently so a single
    unresponsive site cannot hang the process.
    """

    site: str = DEFAULT_SITE
    headless: bool = True
    navigation_timeout: float = 60.0
    visibility_timeout: float = 5.0
    popup_timeout: float = 15.0
    download_timeout: float = 60.0
    load_timeout: float = 30.0
    poll_interval: float = 0.5
    download_dir: Optional[str] = None
    local_store: Optional[str] = None
    s3_bucket: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the environment

        Returns:
            Settings populated from RECORDER_*, S3/AWS and LLM_* variables

        Raises:
            ConfigError: If a numeric variable cannot be parsed
        """
        return cls(
            site=_env_str("RECORDER_SITE", DEFAULT_SITE),
            headless=_env_bool("RECORDER_HEADLESS", True),
            navigation_timeout=_env_float("RECORDER_NAVIGATION_TIMEOUT", 60.0),
            visibility_timeout=_env_float("RECORDER_VISIBILITY_TIMEOUT", 5.0),
            popup_timeout=_env_float("RECORDER_POPUP_TIMEOUT", 15.0),
            download_timeout=_env_float("RECORDER_DOWNLOAD_TIMEOUT", 60.0),
            load_timeout=_env_float("RECORDER_LOAD_TIMEOUT", 30.0),
            poll_interval=_env_float("RECORDER_POLL_INTERVAL", 0.5),
            download_dir=_env_str("RECORDER_DOWNLOAD_DIR"),
            local_store=_env_str("RECORDER_LOCAL_STORE"),
            s3_bucket=_env_str("S3_BUCKET_NAME"),
            aws_region=_env_str("AWS_REGION", "us-east-1"),
            s3_endpoint_url=_env_str("S3_ENDPOINT_URL"),
            llm_api_key=_env_str("LLM_API_KEY", _env_str("DEEPSEEK_API_KEY")),
            llm_base_url=_env_str("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            llm_model=_env_str("LLM_MODEL", DEFAULT_LLM_MODEL),
        )
