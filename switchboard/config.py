"""
Configuration management for the Switchboard server.
Supports environment variables and a .env file.
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "switchboard.log"

    # Routing
    switchboard_registry_path: Optional[str] = None  # JSON handler registry; built-in when unset
    switchboard_max_handoff_hops: int = Field(6, ge=1, le=8)
    switchboard_domain_threshold: int = Field(3, ge=1)

    # Specialists (Ollama)
    specialist_model: str = "qwen2.5:3b"
    specialist_temperature: float = 0.1
    specialist_max_tokens: int = 1024
    specialist_prompts_dir: Optional[str] = None  # <handler_id>.txt overrides

    # Sessions
    session_timeout_minutes: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
