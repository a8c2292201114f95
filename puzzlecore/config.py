"""Configuration management for the puzzle engine."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    environment: str = Field("development")
    log_level: str = Field("INFO")
    api_host: str = Field("0.0.0.0")
    api_port: int = Field(8000)

    # Redis Configuration
    redis_url: str = Field("redis://localhost:6379")

    # Analytics persistence ("memory" or "neo4j")
    analytics_backend: str = Field("memory")
    neo4j_uri: str = Field("bolt://localhost:7687")
    neo4j_user: str = Field("neo4j")
    neo4j_password: str = Field("password")
    neo4j_database: Optional[str] = Field(None)

    # Session Settings
    history_capacity: int = Field(50, ge=1)
    auto_reveal_forced_cells: bool = Field(False)

    # Scoring
    target_time_ms: int = Field(300_000, gt=0)
    max_time_bonus: int = Field(1000, ge=0)
    hint_penalty: int = Field(50, ge=0)
    free_moves: int = Field(20, ge=0)
    move_penalty: int = Field(10, ge=0)

    # Generation
    sudoku_grid_size: int = Field(9)
    sudoku_removal_attempts: int = Field(1000, gt=0)
    solver_node_limit: int = Field(200_000, gt=0)
    sliding_search_node_limit: int = Field(20_000, gt=0)

    # Statistical Analysis
    user_stats_ttl_seconds: int = Field(300, gt=0)
    population_stats_ttl_seconds: int = Field(1800, gt=0)
    user_history_limit: int = Field(100, gt=0)
    population_window_days: int = Field(30, gt=0)
    trend_window: int = Field(20, ge=5)
    population_outlier_threshold: float = Field(2.5, gt=0)
    personal_outlier_threshold: float = Field(3.0, gt=0)


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
