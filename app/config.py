import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


class Settings:
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    FAL_KEY: str | None = os.getenv("FAL_KEY")

    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    FAL_QUEUE_URL: str = os.getenv("FAL_QUEUE_URL", "https://queue.fal.run")

    PROVIDER_TIMEOUT: float = float(os.getenv("PROVIDER_TIMEOUT", "120"))
    FAL_POLL_INTERVAL: float = float(os.getenv("FAL_POLL_INTERVAL", "0.5"))  # seconds

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    STATIC_DIR: Path = BASE_DIR / "static"


settings = Settings()
