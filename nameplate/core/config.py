from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- External OCR service ---
    OCR_ENDPOINT: str = "https://api.ocr.space/parse/image"
    OCR_SPACE_API_KEY: str = ""
    OCR_LANGUAGE: str = "eng"
    OCR_DEFAULT_ENGINE: str = "3"
    OCR_FALLBACK_ENGINES: List[str] = ["2", "1"]
    OCR_ATTEMPTS_PER_ENGINE: int = 2
    OCR_REQUEST_TIMEOUT: float = 60.0

    # Backoff multipliers, applied as `delay_ms * attempt`
    OCR_NETWORK_BACKOFF_MS: int = 600
    OCR_SERVER_ERROR_BACKOFF_MS: int = 500
    OCR_TIMEOUT_BACKOFF_MS: int = 600

    # --- Upload budget ---
    UPLOAD_MAX_BYTES: int = 950 * 1024
    UPLOAD_MAX_SIDE: int = 2200
    UPLOAD_MIME: str = "image/jpeg"
    UPLOAD_INITIAL_QUALITY: int = 85
    UPLOAD_MIN_QUALITY: int = 32
    UPLOAD_SHRINK_FACTOR: float = 0.8
    UPLOAD_ALLOW_WEBP: bool = False

    # Hard cap on what the API accepts before preprocessing
    MAX_CAPTURE_BYTES: int = 12 * 1024 * 1024

    # Authoritative (server) extraction rules by default
    EXTRACTION_STRICT: bool = True

    # --- Infrastructure ---
    REDIS_URL: str = "redis://redis:6379/0"
    MINIO_ENDPOINT: str = "minio:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_SECURE: bool = False
    PHOTO_BUCKET: str = "nameplates"


settings = Settings()
