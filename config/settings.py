from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database (report cache)
    DATABASE_URL: str = "sqlite+aiosqlite:///./pain_pulse.db"

    # Server
    API_PORT: int = 8001
    LOG_LEVEL: str = "INFO"

    # Outbound HTTP
    USER_AGENT: str = "PainPulse/1.0 (Market Research Tool)"
    HTTP_TIMEOUT_SECONDS: float = 20.0
    SOURCE_REQUEST_DELAY: float = 0.3

    # Sources
    ENABLED_SOURCES: str = "reddit,hackernews,github,devto,serper"
    REDDIT_TIME_FILTER: str = "month"
    HN_WINDOW_DAYS: int = 30
    GITHUB_TOKEN: str = ""
    SERPER_API_KEY: str = ""
    DEEP_SCAN_LIMIT: int = 12

    # Embeddings
    EMBEDDING_ENABLED: bool = True
    EMBEDDING_MODEL_NAME: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Analysis
    RELEVANCE_THRESHOLD: float = 0.35
    DEDUPE_TITLE_SIMILARITY: float = 0.9
    MAX_THEMES: int = 5
    MIN_DYNAMIC_THEMES: int = 2
    EMBEDDING_CLUSTERS: int = 4
    TOP_PHRASES_LIMIT: int = 20
    FRICTIONS_LIMIT: int = 8
    RECEIPTS_LIMIT: int = 6
    PAIN_THRESHOLD: float = 0.3

    # Report cache
    REPORT_WINDOW_DAYS: int = 7
    CACHE_TTL_HOURS: int = 24

    # Per-client throttle
    RATE_LIMIT_MAX_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def enabled_sources(self) -> list[str]:
        return [s.strip().lower() for s in self.ENABLED_SOURCES.split(",") if s.strip()]


settings = Settings()
