from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application configuration settings"""

    # Application
    APP_NAME: str = "OCR Image Processing API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Image validation
    MAX_IMAGE_SIZE_BYTES: int = 10 * 1024 * 1024  # 10MB
    MAX_IMAGES_PER_BATCH: int = 50
    ALLOWED_MIME_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp", "image/tiff"]

    # OCR Settings
    OCR_DEFAULT_LANGUAGE: str = "eng"
    OCR_GPU_ENABLED: bool = False
    OCR_MAX_IMAGE_DIMENSION: int = 4000  # Downscale images wider than this (pixels)

    # OCR Cleanup Options
    OCR_PARAGRAPH_MODE: bool = False  # Merge lines into paragraphs
    OCR_MIN_CONFIDENCE: float = 0.0  # Filter out low-confidence text (0.0 - 1.0)
    OCR_STRIP_WHITESPACE: bool = True  # Remove leading/trailing whitespace

    # Result store (unset = degraded mode, nothing is persisted)
    DATABASE_URL: Optional[str] = None

    # Object storage
    STORAGE_BACKEND: str = "local"  # "local" | "s3"
    STORAGE_LOCAL_DIR: str = "./storage"
    STORAGE_PUBLIC_URL: str = "http://localhost:8000/files"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_DEFAULT_REGION: str = "ap-northeast-2"
    AWS_BUCKET: Optional[str] = None

    # Auth
    JWT_SECRET_KEY: str = "secret"
    JWT_ALGORITHM: str = "HS256"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def max_image_size_mb(self) -> float:
        return self.MAX_IMAGE_SIZE_BYTES / 1024 / 1024


settings = Settings()
