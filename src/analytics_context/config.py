from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict

DEFAULT_MAX_ROWS = 1000
DEFAULT_MAX_FILE_BYTES = 6 * 1024 * 1024  # 6 MB
DEFAULT_SAMPLE_SIZE = 100
DEFAULT_LLM_MODEL = "gpt-4o-mini"


class Settings(BaseModel):
    """
    Runtime settings, read from the environment by load_settings().

    max_rows: preview row cap handed to parsers
    max_file_bytes: largest content accepted for import
    sample_size: upper bound for rows placed in the data sample
    llm_model: model name for the optional OpenAI backend
    """
    model_config = ConfigDict(frozen=True)

    max_rows: int = DEFAULT_MAX_ROWS
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    sample_size: int = DEFAULT_SAMPLE_SIZE
    llm_model: str = DEFAULT_LLM_MODEL
    log_level: str = "WARNING"
    log_format: str = "console"


def load_settings() -> Settings:
    return Settings(
        max_rows=_get_positive_int("ANALYTICS_MAX_ROWS", DEFAULT_MAX_ROWS),
        max_file_bytes=_get_positive_int("ANALYTICS_MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES),
        sample_size=_get_positive_int("ANALYTICS_SAMPLE_SIZE", DEFAULT_SAMPLE_SIZE),
        llm_model=_get_str("ANALYTICS_LLM_MODEL", DEFAULT_LLM_MODEL),
        log_level=_get_str("ANALYTICS_LOG_LEVEL", "WARNING").upper(),
        log_format=_get_str("ANALYTICS_LOG_FORMAT", "console").lower(),
    )


def _get_positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        v = int(raw)
        return v if v > 0 else default
    except ValueError:
        return default


def _get_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()
