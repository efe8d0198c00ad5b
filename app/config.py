"""
Feedback Insights Application Configuration
===========================================

PURPOSE:
    Pydantic-Settings based configuration for the feedback insights backend.
    All settings can be overridden via environment variables (FEEDBACK_ prefix)
    or a local .env file.
"""

import logging
from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Values shipped in example .env files; treated the same as "not set".
_PLACEHOLDER_API_KEYS = {"", "sk-your-api-key-here"}


class Settings(BaseSettings):
    """Runtime configuration for analysis, persistence and logging."""

    app_name: str = "Feedback Insights"
    debug: bool = False

    # Persistence
    data_directory: str = "./data"
    database_url: Optional[str] = None  # Defaults to SQLite under data_directory

    # Analysis provider selection
    # auto    -> online when an API key is configured, offline otherwise
    # online  -> remote model (still demotes to offline on first failure)
    # offline -> deterministic local generator only
    analysis_mode: Literal["auto", "online", "offline"] = "auto"

    # LLM settings (remote analysis)
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-3.5-turbo"
    llm_temperature: float = 0.3  # Low temperature keeps the JSON terse
    llm_max_tokens: int = 300
    llm_timeout_s: float = 15.0

    # Input limits
    max_feedback_length: int = 10_000
    default_page_size: int = 10
    max_page_size: int = 100

    # Logging
    log_dir: str = "logs"
    log_file: str = "feedback-insights.jsonl"
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"
        env_prefix = "FEEDBACK_"

    def has_openai_key(self) -> bool:
        """True when a usable (non-placeholder) OpenAI key is configured."""
        key = (self.openai_api_key or "").strip()
        return key not in _PLACEHOLDER_API_KEYS

    def resolved_analysis_mode(self) -> Literal["online", "offline"]:
        """Resolve ``auto`` into a concrete starting mode."""
        if self.analysis_mode == "offline":
            return "offline"
        if self.analysis_mode == "online":
            if not self.has_openai_key():
                logger.warning(
                    "FEEDBACK_ANALYSIS_MODE=online but no OpenAI API key configured; "
                    "starting in offline mode"
                )
                return "offline"
            return "online"
        return "online" if self.has_openai_key() else "offline"

    def get_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{Path(self.data_directory) / 'feedback.db'}"


settings = Settings()
