from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "treasure-hunt-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Treasure Hunt")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/treasure_hunt_dev")

    # QR claim tokens (HMAC key; empty means unconfigured)
    qr_secret: str = os.getenv("QR_SECRET", "")
    qr_default_ttl_days: int = int(os.getenv("QR_DEFAULT_TTL_DAYS", "365"))
    qr_png_box_size: int = int(os.getenv("QR_PNG_BOX_SIZE", "8"))
    qr_png_border: int = int(os.getenv("QR_PNG_BORDER", "1"))

    # Admin bootstrap
    admin_uid: str = os.getenv("ADMIN_UID") or os.getenv("APP_ADMIN_UID", "")

    # Optimistic retries for the claim transaction
    claim_max_attempts: int = int(os.getenv("CLAIM_MAX_ATTEMPTS", "5"))

settings = Settings()
