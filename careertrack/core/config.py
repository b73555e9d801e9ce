"""
Configuration management for CareerTrack.

Loads settings from environment variables (and an optional .env file)
with sensible defaults. Uses pydantic-settings for validation.
"""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class BackendSettings(BaseSettings):
    """Backend REST API connection settings."""

    base_url: str = Field(
        default="http://localhost:5000",
        description="Base URL of the job store / AI backend"
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token sent with every request"
    )
    timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for CRUD requests"
    )
    analysis_timeout_seconds: float = Field(
        default=120.0,
        description="Timeout for AI analysis requests (these are slow)"
    )

    class Config:
        env_prefix = "BACKEND_"
        env_file = ".env"
        extra = "ignore"


class AnalysisSettings(BaseSettings):
    """Job compatibility analysis settings."""

    auto_analyze_min_length: int = Field(
        default=20,
        description="Descriptions longer than this are analyzed automatically on create"
    )
    analyze_on_update: bool = Field(
        default=False,
        description="Re-run the analysis after an edit when the description qualifies"
    )

    class Config:
        env_prefix = "ANALYSIS_"
        env_file = ".env"
        extra = "ignore"


class ResumeSettings(BaseSettings):
    """Standalone resume analysis settings."""

    min_resume_length: int = Field(
        default=50,
        description="Minimum trimmed resume length accepted for analysis"
    )

    class Config:
        env_prefix = "RESUME_"
        env_file = ".env"
        extra = "ignore"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    # Application
    app_name: str = "CareerTrack"
    debug: bool = Field(default=False)
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Sub-settings
    backend: BackendSettings = Field(default_factory=BackendSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    resume: ResumeSettings = Field(default_factory=ResumeSettings)

    class Config:
        env_prefix = "CAREERTRACK_"
        env_file = ".env"
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings. Useful for dependency injection."""
    return settings
