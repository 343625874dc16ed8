"""Configuration management for charadex."""

import os
from pathlib import Path

from dotenv import load_dotenv


# Load environment variables from .env file
def _find_env_file() -> Path | None:
    """Find the .env file, searching up the directory tree."""
    current = Path(__file__).parent
    for _ in range(5):  # Search up to 5 levels
        env_path = current / ".env"
        if env_path.exists():
            return env_path
        current = current.parent
    return None


_env_file = _find_env_file()
if _env_file:
    load_dotenv(_env_file)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Application configuration from environment variables."""

    # Store
    DATA_DIR: str = os.getenv("CHARADEX_DATA_DIR", "./data")

    # Source credentials
    RAWG_API_KEY: str = os.getenv("RAWG_API_KEY", "")

    # Source pacing
    ANILIST_REQUESTS_PER_MINUTE: int = int(os.getenv("ANILIST_REQUESTS_PER_MINUTE", "10"))
    ANILIST_SAFE_MODE: bool = _env_bool("ANILIST_SAFE_MODE")
    JIKAN_REQUESTS_PER_SECOND: int = int(os.getenv("JIKAN_REQUESTS_PER_SECOND", "1"))
    RAWG_REQUESTS_PER_MINUTE: int = int(os.getenv("RAWG_REQUESTS_PER_MINUTE", "20"))
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30"))

    # Crawl pacing (seconds)
    DELAY_BETWEEN_IMPORTS: float = float(os.getenv("DELAY_BETWEEN_IMPORTS", "10"))
    DELAY_BETWEEN_PAGES: float = float(os.getenv("DELAY_BETWEEN_PAGES", "1"))
    CHARACTER_LIMIT: int = int(os.getenv("CHARACTER_LIMIT", "50"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration, return list of issues."""
        issues = []

        if not cls.RAWG_API_KEY:
            issues.append(
                "RAWG_API_KEY is not configured; game imports will fail. "
                "Get a free key at https://rawg.io/apidocs and set it in .env"
            )

        if cls.ANILIST_REQUESTS_PER_MINUTE <= 0:
            issues.append("ANILIST_REQUESTS_PER_MINUTE must be positive")

        return issues

    @classmethod
    def get_data_dir(cls) -> Path:
        """Get the data directory as a resolved path."""
        return Path(cls.DATA_DIR).resolve()

