from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

from .constants import DEFAULT_PRIORITY


class EngineConfig(BaseModel):
    """Defaults applied by the workflow engine."""

    default_priority: int = DEFAULT_PRIORITY


class CertflowConfig(BaseModel):
    """Top-level configuration model."""

    definitions_path: Optional[str] = None
    database_url: Optional[str] = None
    legacy_suffix_matching: bool = False
    engine: EngineConfig = EngineConfig()


def load_config(path: Optional[str] = None) -> CertflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CERTFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CERTFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CertflowConfig(**data)
    else:
        config = CertflowConfig()

    env_db_url = os.getenv("CERTFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_definitions = os.getenv("CERTFLOW_DEFINITIONS_PATH")
    if env_definitions:
        config.definitions_path = env_definitions
    return config
