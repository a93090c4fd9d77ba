"""
Application configuration management using Pydantic Settings.
Handles environment-based configuration for storage, the conversation engine,
the provisioning pipeline and the external status probe.
"""
import os
from typing import Optional, List
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application settings
    APP_NAME: str = "Competitor Research Chat API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database settings
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "competitor_research"
    # Multi-document transactions require a replica set
    MONGODB_USE_TRANSACTIONS: bool = bool(os.getenv("MONGODB_USE_TRANSACTIONS", "true").lower() in ("1", "true", "yes"))

    # Redis settings
    REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
    REDIS_DB: int = 0
    SESSION_CACHE_TTL: int = 1800  # 30 minutes

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]
    ALLOWED_METHODS: List[str] = ["GET", "POST", "DELETE", "OPTIONS"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # Conversation engine
    ENABLE_COMPREHENSIVE_FLOW: bool = bool(os.getenv("ENABLE_COMPREHENSIVE_FLOW", "true").lower() in ("1", "true", "yes"))
    TURN_TIMEOUT_SECONDS: float = 5.0
    MAX_INPUT_CHARS: int = 10000
    # Promote generic-industry and brief-customer warnings to blocking errors
    STRICT_BUSINESS_RULES: bool = False

    # Provisioning pipeline
    PROVISIONING_TIMEOUT_SECONDS: float = 180.0
    REPORT_MAX_RETRIES: int = 2
    REPORT_BACKOFF_BASE_SECONDS: float = 1.0
    REPORT_BACKOFF_MAX_SECONDS: float = 10.0
    REPORT_TEMPLATE: str = "comprehensive"
    SUPPORT_CONTACT: str = os.getenv("SUPPORT_CONTACT", "support@competitor-research.local")

    # External status probe
    STATUS_PROBE_CACHE_SECONDS: float = 120.0
    STATUS_PROBE_TIMEOUT_SECONDS: float = 1.5

    # AI provider settings (report generation dependency)
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GROQ_API_KEY: Optional[str] = os.getenv("GROQ_API_KEY")
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    PRIMARY_AI_PROVIDER: str = "openai"
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GROQ_MODEL: str = os.getenv("GROQ_MODEL", "llama3-70b-8192")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("MONGODB_URL")
    def validate_mongodb_url(cls, v):
        """Validate MongoDB URL format."""
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MONGODB_URL must start with 'mongodb://' or 'mongodb+srv://'")
        return v

    @field_validator("REDIS_URL")
    def validate_redis_url(cls, v):
        """Validate Redis URL format."""
        if v is None or v == "":
            return v
        if not v.startswith("redis://") and not v.startswith("rediss://"):
            raise ValueError("REDIS_URL must start with 'redis://' or 'rediss://'")
        return v

    @field_validator("REPORT_MAX_RETRIES")
    def validate_report_max_retries(cls, v):
        """Keep the report retry bound small."""
        if v < 0 or v > 5:
            raise ValueError("REPORT_MAX_RETRIES must be between 0 and 5")
        return v

    @field_validator("TURN_TIMEOUT_SECONDS", "STATUS_PROBE_TIMEOUT_SECONDS", "PROVISIONING_TIMEOUT_SECONDS")
    def validate_positive_timeout(cls, v):
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("timeouts must be greater than zero")
        return v

    @field_validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        """Accept standard logging level names only."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("LOG_LEVEL must be a standard logging level name")
        return level

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
