"""Application configuration."""

from pathlib import Path
from typing import Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from `CAMERA_APP_*` environment variables."""

    media_root: Path = Path("media")
    capture_album: str = "Pictures/Camera"
    saved_album: str = "Pictures/SavedImages"
    discover_existing_photos: bool = False

    capture_timeout: int = 10
    live_view_error_after: float = 2.5
    recovery_attempt_interval: float = 2.0

    thumbnail_size: Tuple[int, int] = (320, 200)

    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CAMERA_APP_",
        env_file=".env",
        extra="ignore",
    )
