# ai_review/core/config.py
from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    SERVICE_NAME: str = "ai-service"
    LOG_LEVEL: str = "INFO"

    # Redis (event transport)
    REDIS_URL: str = "redis://localhost:6379/0"
    # streams are named "<EVENTS_EXCHANGE>:<routing_key>"
    EVENTS_EXCHANGE: str = "splits-network-events"
    # consumer group shared by every ai-service worker
    AI_QUEUE_NAME: str = "ai-service-queue"

    # Worker tuning
    WORKER_PREFETCH: int = 4
    # 0 disables the dead-letter cutoff (requeue forever)
    WORKER_MAX_ATTEMPTS: int = 5
    WORKER_CLAIM_IDLE_MS: int = 60_000
    WORKER_READ_BLOCK_MS: int = 5000

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017/ats"
    MONGODB_DB: str = "ats"

    # Upstream system of record
    ATS_SERVICE_URL: str = "http://localhost:3002/api/v2"
    INTERNAL_SERVICE_KEY: Optional[str] = None
    ATS_TIMEOUT_SEC: float = 15.0

    # AI chat-completion API
    AI_API_KEY: Optional[str] = None
    AI_BASE_URL: str = "https://api.openai.com/v1"
    AI_MODEL: str = "gpt-4o-mini"
    AI_TEMPERATURE: float = 0.3
    AI_TIMEOUT_SEC: float = 60.0

    # Pydantic v2 settings: read from .env file
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# single shared settings instance
settings = Settings()
