"""Application configuration for topupshop."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

_default_data_dir = Path(__file__).parent.parent.parent / "data"


class AppConfig(BaseSettings):
    """Settings loaded from TOPUPSHOP_* environment variables and .env (if present)."""

    # Storage
    data_dir: Path = _default_data_dir
    kv_file: str = "kv_store.json"
    assets_dir: str = "assets"

    # API
    api_token: str = "change-me"
    signing_secret: str = "dev-signing-secret"
    public_base_url: str = "http://127.0.0.1:8000"
    cors_origins: list[str] = ["*"]

    # Uploads
    max_upload_bytes: int = 5 * 1024 * 1024
    signed_url_ttl_seconds: int = 60 * 60 * 24 * 7

    # Dashboard
    poll_interval_seconds: float = 5.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TOPUPSHOP_", env_file=".env", env_file_encoding="utf-8"
    )

    @property
    def kv_path(self) -> Path:
        return self.data_dir / self.kv_file

    @property
    def assets_path(self) -> Path:
        return self.data_dir / self.assets_dir


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the AppConfig instance, loading it on first use."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config


def set_config_for_test(**kwargs) -> AppConfig:
    """For testing only: override the AppConfig instance with new values."""
    global _config
    _config = AppConfig(**kwargs)
    return _config
