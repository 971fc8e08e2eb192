from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Meetwise"

    database_url: str = "sqlite:///./meetwise.db"

    # Optional directory for the rotating backend log
    logs_dir: Optional[Path] = None
    log_level: str = "INFO"

    # External text-generation service (Gemini)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-pro"
    llm_timeout_s: float = 60.0
    max_transcript_chars: int = 30_000
    max_output_tokens: int = 8000
    extraction_temperature: float = 0.7
    segmentation_temperature: float = 0.2
    segmentation_top_p: float = 0.8
    segmentation_top_k: int = 40

    # Keep assignment/proof/approval state of tasks when a meeting is re-analyzed
    preserve_tasks_on_reanalysis: bool = True
    notifications_enabled: bool = True

    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    class Config:
        env_prefix = "MW_"
        case_sensitive = False

    def ensure_dirs(self) -> None:
        if self.logs_dir is not None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
