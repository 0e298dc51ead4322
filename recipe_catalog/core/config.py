from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Recipe Catalog API"
    ROOT_PATH: str = ""
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    SECRET_KEY: str = "your-super-secret-key"  # Default for dev, override in prod
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 72
    ALGORITHM: str = "HS256"

    FIRST_SUPERUSER_EMAIL: str = "admin@example.com"
    FIRST_SUPERUSER_PASSWORD: str = "admin123"

    # Database
    DATABASE_URL: str = "sqlite:///./recipes.db"

    # Image storage
    MEDIA_ROOT: str = "./media"
    MEDIA_URL: str = "/media"
    IMAGE_MAX_WIDTH: int = 2048
    IMAGE_MAX_HEIGHT: int = 2048
    IMAGE_MAX_BYTES: int = 10 * 1024 * 1024
    IMAGE_STORAGE_TIMEOUT_SECONDS: float = 10.0

    # Browsing
    DEFAULT_PAGE_SIZE: int = 10

    # CORS
    # In production, you would handle this more robustly, possibly parsing a comma-separated string
    CORS_ORIGINS: List[str] = [
        "http://localhost:4200",
        "http://localhost:3000"
    ]

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
