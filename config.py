"""
Tidemark - Android App Baseline Comparison
"""
from pathlib import Path
from pydantic_settings import BaseSettings

from core.structured import StructuralLocations


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application Info
    APP_NAME: str = "Tidemark"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Storage
    # Each target gets its own <OUTPUT_DIR>/<target>_assessment namespace
    OUTPUT_DIR: Path = Path(".")
    RETAIN_CURRENT_STATE: bool = False  # Keep the current snapshot after a compare run

    # Device acquisition
    SOURCE_PATH_TEMPLATE: str = "/data/data/{target}"
    ADB_PATH: str = "adb"
    DEVICE_SCRATCH_PATH: str = "/sdcard/temp_app_data"
    FETCH_TIMEOUT_SECONDS: int = 600  # Only the device pull may run this long
    ADB_COMMAND_TIMEOUT_SECONDS: int = 30

    # Hashing
    HASH_WORKERS: int = 4
    HASH_CHUNK_SIZE: int = 1024 * 1024

    # Structured formats
    PREFERENCE_DIR_NAMES: list[str] = ["shared_prefs"]
    PREFERENCE_EXTENSIONS: list[str] = [".xml"]
    DATABASE_DIR_NAMES: list[str] = ["databases"]
    DATABASE_EXTENSIONS: list[str] = [".db", ".sqlite", ".sqlite3"]
    DIFF_CONTEXT_LINES: int = 3

    # API server
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000
    # Comma-separated list of allowed origins, or "*" for all
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def structural_locations(self) -> StructuralLocations:
        """Recognized preference/database locations for the comparators."""
        return StructuralLocations(
            preference_dirs=tuple(self.PREFERENCE_DIR_NAMES),
            preference_extensions=tuple(self.PREFERENCE_EXTENSIONS),
            database_dirs=tuple(self.DATABASE_DIR_NAMES),
            database_extensions=tuple(self.DATABASE_EXTENSIONS)
        )


settings = Settings()
