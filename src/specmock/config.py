"""Configuration loading and validation for specmock."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Configuration for the FastAPI server."""

    host: str = "127.0.0.1"
    port: int = 8080


class ContractsConfig(BaseModel):
    """Where contracts are loaded from and which features they may use."""

    directory: str = Field(default="./contracts", description="Directory scanned for *.json")
    allow_except: bool = Field(
        default=True,
        description="Serve contracts that declare except cases",
    )


class FillerConfig(BaseModel):
    """Configuration for the random filler generator."""

    locale: str = Field(default="en_US", description="Faker locale")
    seed: int | None = Field(default=None, description="Seed for reproducible filler values")


class LoggingConfig(BaseModel):
    """Configuration for logging output."""

    level: str = "info"


class SpecmockConfig(BaseModel):
    """Top-level specmock configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    contracts: ContractsConfig = Field(default_factory=ContractsConfig)
    filler: FillerConfig = Field(default_factory=FillerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path | None = None) -> SpecmockConfig:
    """Load specmock configuration from a YAML file.

    The ``HOST`` and ``PORT`` environment variables override the server
    section.

    Args:
        path: Path to the YAML config file. If None, uses 'specmock.yaml'
              in the current directory, falling back to defaults.

    Returns:
        A validated SpecmockConfig instance.
    """
    path = Path("specmock.yaml") if path is None else Path(path)

    raw: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

    server = dict(raw.get("server") or {})
    if os.environ.get("HOST"):
        server["host"] = os.environ["HOST"]
    if os.environ.get("PORT"):
        server["port"] = os.environ["PORT"]
    if server:
        raw["server"] = server

    return SpecmockConfig.model_validate(raw)
