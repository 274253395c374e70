from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


_STORAGE_PATH_ENV = "TRANSFORMER_STORAGE_PATH"
_STATE_KEY_ENV = "TRANSFORMER_STATE_KEY"
_SAMPLE_PATH_ENV = "TRANSFORMER_SAMPLE_DATA_PATH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_STATE_KEY = "transformer-app-state"
DEFAULT_SAMPLE_PATH = Path(__file__).resolve().parent / "static" / "sampledata.json"


@dataclass(frozen=True)
class Settings:
    storage_root_path: Optional[str]
    state_key: str
    sample_data_path: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        storage_root_path=_read_optional_env(_STORAGE_PATH_ENV, "./tmp/local_storage"),
        state_key=_read_str_env(_STATE_KEY_ENV, DEFAULT_STATE_KEY),
        sample_data_path=_read_str_env(_SAMPLE_PATH_ENV, str(DEFAULT_SAMPLE_PATH)),
        log_level=_read_log_level("INFO"),
    )
