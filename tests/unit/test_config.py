"""Tests for configuration loading."""

import pytest

from certflow.config import load_config
from certflow.definitions import (
    FileSystemDefinitionProvider,
    InMemoryDefinitionProvider,
    get_definition_provider,
)
from certflow.persistence import (
    InMemoryWorkflowRepository,
    SQLiteWorkflowRepository,
    get_repository,
)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "certflow.yaml"
    config_path.write_text(
        """
definitions_path: /srv/workflows
legacy_suffix_matching: true
engine:
  default_priority: 2
"""
    )
    monkeypatch.setenv("CERTFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.definitions_path == "/srv/workflows"
    assert config.legacy_suffix_matching is True
    assert config.engine.default_priority == 2
    assert config.database_url is None


def test_env_overrides_file_values(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite://from-file.db\n")
    monkeypatch.setenv("DATABASE_URL", "sqlite://from-env.db")
    monkeypatch.setenv("CERTFLOW_DEFINITIONS_PATH", "/env/defs")

    config = load_config(str(config_path))
    assert config.database_url == "sqlite://from-env.db"
    assert config.definitions_path == "/env/defs"


def test_missing_file_gives_defaults():
    config = load_config("does-not-exist.yaml")
    assert config.definitions_path is None
    assert config.engine.default_priority == 3


def test_get_repository_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"database_url: sqlite://{tmp_path / 'wf.db'}\n")
    monkeypatch.setenv("CERTFLOW_CONFIG", str(config_path))

    repo = get_repository()
    assert isinstance(repo, SQLiteWorkflowRepository)
    assert repo.db_path == str(tmp_path / "wf.db")
    assert get_repository() is repo


def test_get_repository_defaults_to_memory_and_rejects_unknown_backends():
    assert isinstance(get_repository(), InMemoryWorkflowRepository)
    with pytest.raises(ValueError):
        get_repository("mysql://localhost/certflow")


def test_get_definition_provider_uses_env(tmp_path, monkeypatch):
    assert isinstance(get_definition_provider(), InMemoryDefinitionProvider)

    monkeypatch.setenv("CERTFLOW_DEFINITIONS_PATH", str(tmp_path))
    provider = get_definition_provider(config=load_config())
    assert isinstance(provider, FileSystemDefinitionProvider)
    assert provider.base_path == tmp_path.resolve()
