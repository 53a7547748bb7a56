from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FITSPO_")

    backend_dir: Path = Path(__file__).resolve().parents[1]
    data_dir: Path = backend_dir / "data"
    inputs_dir: Path = data_dir / "post_images"

    database_url: str = f"sqlite:///{(data_dir / 'fitspo.db').as_posix()}"

    max_upload_bytes: int = 20 * 1024 * 1024
    allowed_content_types: tuple[str, ...] = ("image/jpeg", "image/png", "image/webp")

    # Base URL the inference service uses to fetch post images.
    public_base_url: str = "http://localhost:8000"

    functions_base_url: str = "http://localhost:5001/fitspo/us-central1"
    functions_auth_token: str | None = None
    scan_submit_function: str = "scanOutfit"
    scan_status_function: str = "fetchReplicate"
    http_timeout_seconds: float = 30.0

    scan_poll_interval_seconds: float = 2.0
    scan_max_attempts: int = 15

    shop_search_url: str = "https://www.google.com/search?q="

    log_level: str = "INFO"

    cors_allow_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")

settings = Settings()
