"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    normalized = raw_value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class PipelineSettings:
    """
    Runtime settings for the recompute pipeline.
    """

    write_batch_size: int = 500
    prune_prior_versions: bool = True
    narrative_enabled: bool = True


@dataclass(frozen=True)
class NormalizerSettings:
    """
    Record normalization behaviour.

    With ``clamp_negative`` off, negative revenues lower total GMV.
    Concentration shares then divide by the active GMV instead, so the
    TopK shares stay at or below 1.  Mix, tier and approval shares still
    divide by the signed total and may leave [0, 1].
    """

    clamp_negative: bool = True


@dataclass(frozen=True)
class CSVUploadSettings:
    """
    Limits applied to uploaded CSV files.
    """

    max_rows: int = 200_000
    encoding: str = "utf-8-sig"


@lru_cache(maxsize=1)
def get_pipeline_settings() -> PipelineSettings:
    """
    Return cached pipeline settings from environment variables.
    """

    return PipelineSettings(
        write_batch_size=max(1, _get_int_env("PIPELINE_WRITE_BATCH_SIZE", 500)),
        prune_prior_versions=_get_bool_env("PIPELINE_PRUNE_PRIOR_VERSIONS", True),
        narrative_enabled=_get_bool_env("PIPELINE_NARRATIVE_ENABLED", True),
    )


@lru_cache(maxsize=1)
def get_normalizer_settings() -> NormalizerSettings:
    """
    Return cached normalizer settings from environment variables.
    """

    return NormalizerSettings(
        clamp_negative=_get_bool_env("NORMALIZER_CLAMP_NEGATIVE", True),
    )


@lru_cache(maxsize=1)
def get_csv_upload_settings() -> CSVUploadSettings:
    """
    Return cached CSV upload settings from environment variables.
    """

    return CSVUploadSettings(
        max_rows=max(1, _get_int_env("CSV_UPLOAD_MAX_ROWS", 200_000)),
        encoding=_get_str_env("CSV_UPLOAD_ENCODING", "utf-8-sig"),
    )
