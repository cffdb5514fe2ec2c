"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompactionConfig(BaseModel):
    """Context budget and compaction thresholds."""
    max_context_tokens: int = 8000
    recent_messages_count: int = 10  # Always kept verbatim
    compressed_share: float = 0.30  # Share of the budget for summaries
    max_key_events: int = 5
    estimator: Literal["chars", "cl100k"] = "chars"
    chars_per_token: int = 4


class SummarizerConfig(BaseModel):
    """Generation settings for memory summaries."""
    model: str = "gemini/gemini-2.5-flash"
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout_seconds: float = 60.0


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None


class StorageConfig(BaseModel):
    """Where sessions and memory records live."""
    sessions_dir: str = "~/.memoria/sessions"
    memory_dir: str = "~/.memoria/memory"


class Config(BaseSettings):
    """Root configuration for memoria."""
    model_config = SettingsConfigDict(env_prefix="MEMORIA_", env_nested_delimiter="__")

    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @property
    def sessions_path(self) -> Path:
        """Get expanded sessions directory."""
        return Path(self.storage.sessions_dir).expanduser()

    @property
    def memory_path(self) -> Path:
        """Get expanded memory record directory."""
        return Path(self.storage.memory_dir).expanduser()
