"""Definition provider backed by JSON files on disk.

Layout under ``base_path``::

    Definitions/<certificationId>.json
    Steps/.../<stepId>.json

Step references look like ``workflows/Steps/common/CT401_step1_data_entry``;
the leading ``workflows/`` segment is dropped and ``.json`` appended.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..models import WorkflowDefinition, WorkflowStep
from .provider import DefinitionProvider

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFINITIONS_DIR = "Definitions"
STEP_REF_PREFIX = "workflows/"


class FileSystemDefinitionProvider(DefinitionProvider):
    """Load workflow configuration from a directory of JSON documents."""

    def __init__(self, base_path: str | Path) -> None:
        self.base_path = Path(base_path).expanduser().resolve()
        logger.info(f"Workflow definitions base path: {self.base_path}")

    # ------------------------------------------------------------------
    # Path helpers
    def definition_path(self, definition_id: str) -> Path:
        return self.base_path / DEFINITIONS_DIR / f"{definition_id}.json"

    def step_path(self, step_ref: str) -> Path:
        relative = step_ref
        if relative.startswith(STEP_REF_PREFIX):
            relative = relative[len(STEP_REF_PREFIX):]
        return self.base_path / f"{relative.strip('/')}.json"

    def _load(self, path: Path, model: Type[ModelT]) -> ModelT | None:
        resolved = path.resolve()
        if not resolved.is_relative_to(self.base_path):
            logger.warning(f"Refusing to read outside the definitions tree: {path}")
            return None
        if not resolved.is_file():
            logger.warning(f"Definition file not found: {resolved}")
            return None
        try:
            return model.model_validate_json(resolved.read_text(encoding="utf-8"))
        except (OSError, ValidationError):
            logger.exception(f"Error loading {model.__name__} from {resolved}")
            return None

    # ------------------------------------------------------------------
    # Provider API
    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        definition = await asyncio.to_thread(
            self._load, self.definition_path(definition_id), WorkflowDefinition
        )
        if definition is not None:
            logger.info(f"Loaded workflow definition {definition_id}")
        return definition

    async def get_step(self, step_ref: str) -> WorkflowStep | None:
        step = await asyncio.to_thread(self._load, self.step_path(step_ref), WorkflowStep)
        if step is not None:
            logger.debug(f"Loaded step definition {step_ref}")
        return step

    async def list_definitions(self) -> list[WorkflowDefinition]:
        directory = self.base_path / DEFINITIONS_DIR
        if not directory.is_dir():
            logger.warning(f"Definitions directory not found: {directory}")
            return []
        definitions: list[WorkflowDefinition] = []
        for path in sorted(directory.glob("*.json")):
            definition = await asyncio.to_thread(self._load, path, WorkflowDefinition)
            if definition is not None:
                definitions.append(definition)
        return definitions
