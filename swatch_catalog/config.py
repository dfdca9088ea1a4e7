# swatch_catalog/config.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from pathlib import Path
from typing import List
from functools import lru_cache

class Settings(BaseSettings):
    ENV: str = "development"
    DATA_DIR: Path = Path("data")  # where the products table lives
    PRODUCTS_FILE: str = "products.csv"  # can be products.xlsx if you prefer Excel

    # object storage: one directory per bucket under STORAGE_DIR
    STORAGE_DIR: Path = Path("storage")
    STORAGE_BUCKET: str = "product-images"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    PLACEHOLDER_IMAGE_URL: str = "/placeholder.svg"
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024

    DEFAULT_PAGE_SIZE: int = 24
    MAX_PAGE_SIZE: int = 100
    SEARCH_DEBOUNCE_MS: int = 300

    CATEGORIES: List[str] = ["Suits", "Sarees", "Kurtis", "Dupattas", "Lehengas", "Fabrics", "Other"]

    CORS_ORIGINS: str = ""
    EXPORT_IMAGE_TIMEOUT: float = 10.0

    # Example .env:
    # DATA_DIR=./data
    # PRODUCTS_FILE=products.xlsx
    # PUBLIC_BASE_URL=https://catalog.example.com

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()

settings = Settings()
