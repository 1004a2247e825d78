import json
from functools import lru_cache

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "ffrender"
    app_version: str = "0.1.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # Public address of this server, used to build download URLs
    public_base_url: str = "http://localhost:3000"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "*"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Working directories
    temp_dir: str = "/tmp/ffrender"
    fonts_dir: str = "/tmp/ffrender-fonts"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    audio_bitrate: str = "128k"

    # Fonts
    default_font_path: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"
    download_fonts_on_startup: bool = True
    font_download_timeout_seconds: float = 30.0
    font_download_batch_size: int = 5

    # Job limits
    max_concurrent_jobs: int = 5
    job_registry_high_water: int = 100
    job_ttl_seconds: int = 3600
    min_free_disk_mb: int = 200

    # Network
    download_timeout_seconds: float = 300.0
    callback_timeout_seconds: float = 30.0
    callback_max_attempts: int = 3
    callback_retry_unit_seconds: float = 5.0

    # Google Cloud Storage
    gcs_bucket_name: str = "ffrender-renders"
    gcs_project_id: str = ""
    # Overrides the default https://storage.googleapis.com/<bucket> base
    storage_public_base_url: str = ""

    # Local storage for development (when GCS is not configured)
    use_local_storage: bool = True
    local_storage_path: str = "/tmp/ffrender-storage"


@lru_cache
def get_settings() -> Settings:
    return Settings()
