"""Configuration file schema for lumifyhub-sync.

Defines Pydantic models for the YAML config file with dedicated sections
for the API connection, the local mirror, sync behaviour and logging.

Usage:
    from lumifyhub_sync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ApiConfig(BaseModel):
    """Remote service connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="Service base URL")
    token: str | None = Field(default=None, description="CLI access token")
    timeout: int = Field(
        default=30,
        ge=1,
        le=600,
        description="Request timeout in seconds (1-600)",
    )

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Local mirror directories."""

    pages_dir: str | None = Field(
        default=None, description="Root directory for pages"
    )
    databases_dir: str | None = Field(
        default=None, description="Root directory for databases"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync behaviour.

    Attributes:
        git_commit: Commit the mirror directories after a pass that wrote
            files.
    """

    git_commit: bool = Field(
        default=True, description="Commit the mirror after changes"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration file contents.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten a ``UnifiedConfig`` into the ``yaml_fallbacks`` dict that
    ``config.load_config()`` consults after CLI args and env vars.

    Unset optional values are left out so built-in defaults apply.
    """
    fallbacks = {
        "api_url": unified.api.url,
        "token": unified.api.token,
        "pages_dir": unified.storage.pages_dir,
        "databases_dir": unified.storage.databases_dir,
        "git_commit": unified.sync.git_commit,
        "timeout": unified.api.timeout,
    }
    return {k: v for k, v in fallbacks.items() if v is not None}
