"""Workflow and step definition providers."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CertflowConfig, load_config
from .filesystem import FileSystemDefinitionProvider
from .inmemory import InMemoryDefinitionProvider
from .provider import DefinitionProvider

_provider_instance: DefinitionProvider | None = None


def get_definition_provider(
    definitions_path: Optional[str] = None, config: Optional[CertflowConfig] = None
) -> DefinitionProvider:
    """Factory function to obtain a definition provider.

    A filesystem provider is returned when a definitions directory is given
    explicitly, via ``CERTFLOW_DEFINITIONS_PATH`` or in configuration;
    otherwise an empty in-memory provider.
    """

    global _provider_instance
    if _provider_instance is not None and definitions_path is None and config is None:
        return _provider_instance

    config = config or load_config()
    definitions_path = (
        definitions_path
        or os.getenv("CERTFLOW_DEFINITIONS_PATH")
        or config.definitions_path
    )

    if definitions_path:
        _provider_instance = FileSystemDefinitionProvider(definitions_path)
    else:
        _provider_instance = InMemoryDefinitionProvider()
    return _provider_instance


__all__ = [
    "DefinitionProvider",
    "FileSystemDefinitionProvider",
    "InMemoryDefinitionProvider",
    "get_definition_provider",
]
