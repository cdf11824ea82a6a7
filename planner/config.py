# planner/config.py
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging", "test"] = "dev"
    TZ: str = "Asia/Kolkata"

    # OpenAI (phrasing via LangChain)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    # External phrasing service; takes priority over OpenAI when set
    PHRASING_URL: Optional[str] = None
    PHRASING_TIMEOUT_SECONDS: float = 4.0
    PHRASING_RETRY_TIMEOUT_SECONDS: float = 2.0
    PHRASING_RETRIES: int = 1
    PHRASING_HISTORY_TURNS: int = 6
    PHRASING_BREAKER_THRESHOLD: int = 5
    PHRASING_BREAKER_RECOVERY_SECONDS: int = 60

    # Catalog
    CATALOG_PATH: str = "data/catalog.json"

    # Sessions
    SESSION_TTL_SECONDS: int = 1800  # 30 minutes idle

    # read .env and ignore any extra keys so this doesn't break again
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
