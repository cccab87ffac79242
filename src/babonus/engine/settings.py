from __future__ import annotations
import os
from pathlib import Path
from pydantic import BaseModel
from typing import Literal, Optional

DEFAULT_SETTINGS_PATH = Path.home() / ".babonus" / "settings.json"

class Settings(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    trace_filters: bool = False
    default_content_dir: Optional[str] = None

def settings_path() -> Path:
    override = os.environ.get("BABONUS_SETTINGS")
    return Path(override) if override else DEFAULT_SETTINGS_PATH

def load_settings() -> Settings:
    path = settings_path()
    if path.exists():
        return Settings.model_validate_json(path.read_text(encoding="utf-8"))
    s = Settings()
    save_settings(s)
    return s

def save_settings(s: Settings) -> None:
    path = settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(s.model_dump_json(indent=2), encoding="utf-8")
