"""
Configuration settings for stress-load.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tunable constants. Override with STRESS_LOAD_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STRESS_LOAD_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # CPU: cancellation is checked once per batch, so a worker may keep
    # burning for one full batch after the deadline fires.
    cpu_batch_iterations: int = 50_000_000

    # Safety factors applied to percentage targets
    memory_safety_factor: float = 0.95
    storage_safety_factor: float = 0.90

    # Tick intervals (seconds)
    dynamic_memory_interval: float = 2.0
    dynamic_storage_interval: float = 3.0
    static_memory_interval: float = 5.0
    static_storage_interval: float = 2.0
    progress_interval: float = 1.0

    # Memory
    page_size: int = 4096

    # Storage
    storage_dir: Optional[str] = None
    write_chunk_size: int = 64 * 1024
    static_file_count: int = 10
    static_append_size: int = 256 * 1024
    dynamic_append_size: int = 1024


# Global settings instance
settings = Settings()
