"""Engine settings loaded from the environment (FORMCHECK_*) or a .env file."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    # Text-analysis signals are opt-in; when off the provider answers with neutral constants
    signals_enabled: bool = False
    signal_model: str = "qwen3:8b"
    ollama_host: Optional[str] = None

    # Budget for all signal fetches of one submission, in seconds
    signal_timeout_seconds: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=4, ge=1)

    data_root: Path = Path("data")

    model_config = SettingsConfigDict(env_prefix="FORMCHECK_", env_file=".env", extra="ignore")
