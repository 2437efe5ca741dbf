"""
Configuration settings for StepGraph.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "StepGraph"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Workflow Engine
    CYCLE_THRESHOLD: int = 3  # Max visits to one node per run
    DEFAULT_RETRY_DELAY: float = 1.0  # Seconds

    # Demo workflows
    DEMO_FAILURE_RATE: float = 0.6

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
