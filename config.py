"""
Configuration settings for the Diamond IQ drill engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Session Storage
    # ========================================
    drill_state_dir: Path = Field(
        default=Path.home() / ".diamond_iq",
        description="Directory for session files and the SQLite database",
    )
    drill_session_id: str = Field(
        default="local-session",
        description="Session id used when none is given on the command line",
    )
    drill_store_backend: Literal["json", "sqlite", "memory"] = Field(
        default="json",
        description="Persistence adapter: json (one file per session), sqlite, or memory",
    )

    # ========================================
    # Scenario Content
    # ========================================
    scenario_pack_path: Path = Field(
        default=Path(__file__).parent / "src" / "drill" / "data" / "starter_pack.json",
        description="Scenario pack JSON loaded by the CLI",
    )

    # ========================================
    # Sync & Leaderboard
    # ========================================
    sync_debounce_ms: int = Field(
        default=2000,
        ge=0,
        description="Quiet period after the last answer before queued changes are written",
    )
    leaderboard_cache_ttl_ms: int = Field(
        default=5 * 60 * 1000,
        ge=0,
        description="How long fetched leaderboard rows stay cached",
    )
    leaderboard_page_size: int = Field(
        default=50,
        ge=1,
        description="Leaderboard rows per page",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="WARNING",
        description="Loguru level for the CLI stderr sink",
    )

    def get_drill_config(self) -> dict[str, object]:
        """Get drill runtime configuration as a dictionary."""
        return {
            "store": {
                "backend": self.drill_store_backend,
                "state_dir": str(self.drill_state_dir),
                "session_id": self.drill_session_id,
            },
            "content": {
                "pack_path": str(self.scenario_pack_path),
            },
            "sync": {
                "debounce_ms": self.sync_debounce_ms,
            },
            "leaderboard": {
                "cache_ttl_ms": self.leaderboard_cache_ttl_ms,
                "page_size": self.leaderboard_page_size,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
