"""Configuration settings for the application."""

from typing import List

from pydantic_settings import BaseSettings


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing."""


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # LLM Configuration
    PLANNER: str = "openai"  # Options: openai, anthropic
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4.1-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    PLANNER_TEMPERATURE: float = 0.1
    EXPANSION_TEMPERATURE: float = 0.2
    MAX_TOKENS: int = 4096

    # Financial data provider
    FMP_API_KEY: str | None = None
    FMP_PUBLIC_API_KEY: str = "demo"  # Shown in citation URLs instead of the real key
    FMP_BASE_URL: str = "https://financialmodelingprep.com/stable"
    FMP_TIMEOUT_SECONDS: float = 30.0

    # Agent loop
    MAX_AGENT_STEPS: int = 12

    # Transcript search tuning
    TRANSCRIPT_MATCH_THRESHOLD: float = 0.3  # 0 = exact, 1 = anything
    TRANSCRIPT_MIN_MATCH_LENGTH: int = 3
    TRANSCRIPT_MIN_PARAGRAPH_LENGTH: int = 50
    TRANSCRIPT_MAX_RAW_MATCHES: int = 15
    TRANSCRIPT_MAX_MENTIONS_PER_TRANSCRIPT: int = 8
    TRANSCRIPT_MAX_MENTIONS: int = 15
    TRANSCRIPT_CONTEXT_LENGTH: int = 800
    TRANSCRIPT_SNIPPET_LENGTH: int = 200

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def missing_credentials(self) -> List[str]:
        """Return the names of credentials required by the configured back-ends but unset."""
        missing = []
        planner_key = {
            "openai": "OPENAI_API_KEY",
            "anthropic": "ANTHROPIC_API_KEY",
        }.get(self.PLANNER.lower())
        if planner_key is None:
            raise ConfigurationError(f"Unsupported PLANNER '{self.PLANNER}'")
        if not getattr(self, planner_key):
            missing.append(planner_key)
        if not self.FMP_API_KEY:
            missing.append("FMP_API_KEY")
        return missing

    def require_credentials(self) -> None:
        """Fail fast when API credentials are absent."""
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing)
            )


settings = Settings()
