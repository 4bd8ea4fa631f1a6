"""
Global Configuration Settings

Centralized configuration for the NL query dashboard backend.
Controls the LLM provider selection, timeouts and the application database.
"""

from functools import lru_cache
from typing import List, Optional
import logging

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings, read from the environment and `.env`."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Application (metadata) database
    app_database_url: str = "sqlite:///./nlq_dashboard.db"

    # LLM provider selection
    llm_provider: str = "claude"
    llm_timeout_seconds: float = 150.0
    llm_max_tokens: int = 2000

    # Claude settings
    claude_api_key: Optional[str] = None
    claude_model: str = "claude-3-sonnet-20240229"
    claude_endpoint: str = "https://api.anthropic.com/v1/messages"

    # DeepSeek settings
    deepseek_api_key: Optional[str] = None
    deepseek_model: str = "deepseek-chat"
    deepseek_endpoint: str = "https://api.deepseek.com/v1/chat/completions"

    # OpenAI settings
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    # Target database settings
    connect_timeout_seconds: int = 30
    query_timeout_seconds: float = 30.0

    # Workflow settings
    request_timeout_seconds: Optional[float] = None
    result_sample_rows: int = 5

    # Security settings
    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:4000"])
    rate_limit: str = "30/minute"

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    def is_development_mode(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("dev", "development", "local")

    def get_summary(self) -> dict:
        """Get a summary of current configuration. Secrets are never included."""
        return {
            "llm_provider": self.llm_provider,
            "claude_model": self.claude_model,
            "deepseek_model": self.deepseek_model,
            "openai_model": self.openai_model,
            "llm_timeout_seconds": self.llm_timeout_seconds,
            "query_timeout_seconds": self.query_timeout_seconds,
            "connect_timeout_seconds": self.connect_timeout_seconds,
            "log_level": self.log_level,
            "development_mode": self.is_development_mode(),
        }

    def log_configuration(self) -> None:
        """Log the current configuration settings."""
        logger.info("Application Configuration:")
        logger.info(f"   LLM Provider: {self.llm_provider}")
        logger.info(f"   LLM Timeout: {self.llm_timeout_seconds}s")
        logger.info(f"   Query Timeout: {self.query_timeout_seconds}s")
        logger.info(f"   Environment: {self.environment}")
        logger.info(f"   Log Level: {self.log_level}")


@lru_cache
def get_settings() -> Settings:
    """Get the global settings instance."""
    return Settings()


# Environment variable documentation
ENV_VARS_HELP = """
Environment Variables for Configuration:

Application database:
   APP_DATABASE_URL=mysql+pymysql://...   # Metadata store (default: local SQLite file)

LLM provider:
   LLM_PROVIDER=claude|deepseek|openai    # Provider used for every call (default: claude)
   CLAUDE_API_KEY=...                     # Required when LLM_PROVIDER=claude
   DEEPSEEK_API_KEY=...                   # Required when LLM_PROVIDER=deepseek
   OPENAI_API_KEY=sk-...                  # Required when LLM_PROVIDER=openai
   LLM_TIMEOUT_SECONDS=150                # Per-call HTTP timeout
   REQUEST_TIMEOUT_SECONDS=...            # Optional deadline for a whole request

Target databases:
   CONNECT_TIMEOUT_SECONDS=30             # Connection open timeout
   QUERY_TIMEOUT_SECONDS=30               # SQL execution timeout

Development:
   ENVIRONMENT=development|production
   LOG_LEVEL=INFO|DEBUG|WARNING
"""
