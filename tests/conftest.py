from pathlib import Path

import pytest

import certflow.definitions as definitions
import certflow.persistence as persistence
from certflow.config import CertflowConfig
from certflow.definitions import FileSystemDefinitionProvider
from certflow.engine import WorkflowEngine
from certflow.persistence import InMemoryWorkflowRepository

FIXTURES = Path(__file__).parent / "fixtures" / "workflows"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    for name in (
        "CERTFLOW_CONFIG",
        "CERTFLOW_DATABASE_URL",
        "DATABASE_URL",
        "CERTFLOW_DEFINITIONS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    persistence._repository_instance = None
    definitions._provider_instance = None
    yield
    persistence._repository_instance = None
    definitions._provider_instance = None


@pytest.fixture
def fixtures_path() -> Path:
    return FIXTURES


@pytest.fixture
def provider() -> FileSystemDefinitionProvider:
    return FileSystemDefinitionProvider(FIXTURES)


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def engine(provider, repository) -> WorkflowEngine:
    return WorkflowEngine(
        definitions=provider, repository=repository, config=CertflowConfig()
    )


@pytest.fixture
def step1_data() -> dict:
    return {
        "companyName": "Acme Lighting",
        "powerRating": "123.45",
        "hasExport": "no",
        "brandTable": [{"brand": "Lumo", "model": "L-100"}],
    }


@pytest.fixture
def step2_data() -> dict:
    return {
        "documentFile": {
            "originalFileName": "report.pdf",
            "fileSizeBytes": 1024,
            "fileExtension": ".pdf",
        }
    }


@pytest.fixture
def step3_data() -> dict:
    return {"reviewDecision": "approve", "inspectionScore": 88}
