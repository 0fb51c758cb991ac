"""
Configuration loading and validation.

Loads portal configuration from a YAML file. Every section has defaults that
match the local development stack.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .sync import CHANNEL_NAME, STORAGE_KEY


class ApiConfig(BaseModel):
    url: str = "http://localhost:3004/api"
    verify_tls: bool = True
    request_timeout_seconds: int = 30


class SyncConfig(BaseModel):
    channel_name: str = CHANNEL_NAME
    storage_key: str = STORAGE_KEY


class PortalConfig(BaseModel):
    # Identifies the portal in logout broadcasts and the stored auth source
    source: str = "teamd-admin"
    api: ApiConfig = Field(default_factory=ApiConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)


def load_config(path: str | Path) -> PortalConfig:
    """Load and validate portal configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return PortalConfig.model_validate(raw)
