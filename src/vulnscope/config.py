"""Environment-based configuration."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from vulnscope.constants import DEFAULT_ENGINES

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Reads from .env file and VULNSCOPE_* environment variables."""

    # Logging
    log_level: str = "INFO"

    # Engines (order here does not affect execution order; the
    # registry's registration order does)
    default_engines: Annotated[list[str], NoDecode] = list(
        DEFAULT_ENGINES
    )
    engine_timeout_seconds: float = Field(default=10.0, gt=0)
    engine_max_concurrency: int = Field(default=3, ge=1)

    # Input guard against pathological regex workloads
    max_source_chars: int = Field(default=1_000_000, ge=1)

    # Consensus
    monotonic_confidence: bool = False

    # Observability
    trace_enabled: bool = True

    @field_validator("default_engines", mode="before")
    @classmethod
    def _parse_engines(cls, v: Any) -> Any:
        """Accept comma-separated string or JSON array."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("default_engines")
    @classmethod
    def _validate_engines(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError(
                "default_engines must contain at least one engine"
            )
        seen: set[str] = set()
        dupes: list[str] = []
        for name in v:
            if name in seen:
                dupes.append(name)
            seen.add(name)
        if dupes:
            logger.warning(
                "Duplicate engines in VULNSCOPE_DEFAULT_ENGINES: %s",
                ", ".join(dupes),
            )
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "VULNSCOPE_",
        "extra": "ignore",
    }
