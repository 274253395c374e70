from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from settings import get_settings

DEFAULT_WINDOW_ID = "cli"

_WINDOW_ID_ENV = "TRANSFORMER_CLI_WINDOW_ID"


@dataclass(frozen=True)
class CLIConfig:
    storage_path: Optional[str]
    state_key: str
    sample_path: str
    window_id: str = DEFAULT_WINDOW_ID


def _read_window_id(value: Optional[str]) -> str:
    if value is None:
        return DEFAULT_WINDOW_ID
    candidate = value.strip()
    return candidate or DEFAULT_WINDOW_ID


def load_config(
    storage_path: Optional[str] = None,
    sample_path: Optional[str] = None,
    window_id: Optional[str] = None,
) -> CLIConfig:
    settings = get_settings()
    return CLIConfig(
        storage_path=storage_path if storage_path is not None else settings.storage_root_path,
        state_key=settings.state_key,
        sample_path=sample_path or settings.sample_data_path,
        window_id=window_id or _read_window_id(os.getenv(_WINDOW_ID_ENV)),
    )
