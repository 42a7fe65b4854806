"""Configuration settings models using Pydantic."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenkitSettings(BaseModel):
    """Flow server connection settings."""
    url: str = "http://localhost:3400"
    api_key: Optional[str] = None
    flow_name: str = "bibleChat"
    request_timeout_seconds: float = 30.0


class GenerationSettings(BaseModel):
    """Streaming generation limits."""
    history_window_limit: int = Field(default=10, ge=1)  # Messages sent as context, query included
    timeout_seconds: float = Field(default=60.0, gt=0)


class UsageSettings(BaseModel):
    """Message quota and throttling."""
    free_messages_per_day: int = 10
    pro_access: bool = False  # Pro users are not subject to the daily quota
    min_interval_seconds: float = 1.0
    max_messages_per_minute: int = 20


class LoggingSettings(BaseModel):
    """Log output settings."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: Optional[str] = None  # None = console only
    max_bytes: int = 5 * 1024 * 1024
    retention_days: int = 14


class Settings(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(extra="ignore")  # Ignore unknown fields in config file

    genkit: GenkitSettings = Field(default_factory=GenkitSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    usage: UsageSettings = Field(default_factory=UsageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
