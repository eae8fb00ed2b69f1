"""Definition-side models loaded from workflow configuration files.

Configuration documents are authored in camelCase JSON; every model here
accepts either the camelCase keys or the snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ConfigModel(BaseModel):
    """Immutable model populated from camelCase configuration."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class WorkflowMetadata(ConfigModel):
    workflow_code: str = ""
    applicable_certificate_types: list[str] = Field(default_factory=list)
    estimated_total_duration_days: int = 0
    complexity: str = ""
    requires_factory_visit: bool = False


class StepOverrides(ConfigModel):
    next_step: Optional[str] = None


class StepReference(ConfigModel):
    """Pointer from a definition to a step document plus per-definition overrides."""

    step_ref: str = ""
    step_id: Optional[str] = None
    name: Optional[str] = None
    actor: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    overrides: Optional[StepOverrides] = None

    @property
    def ref_tail(self) -> str:
        """Last path segment of ``step_ref``."""
        return self.step_ref.rstrip("/").rsplit("/", 1)[-1]

    @property
    def next_step_override(self) -> Optional[str]:
        return self.overrides.next_step if self.overrides else None


class SlaConfig(ConfigModel):
    total_sla_days: int = Field(default=0, alias="totalSLADays")
    step_slas: dict[str, int] = Field(default_factory=dict, alias="stepSLAs")


class WorkflowDefinition(ConfigModel):
    """Static description of the ordered steps for one certification type."""

    certification_id: str
    name: str = ""
    description: str = ""
    version: str = ""
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)
    steps: list[StepReference] = Field(default_factory=list)
    sla_config: SlaConfig = Field(default_factory=SlaConfig)


class SelectOption(ConfigModel):
    label: str = ""
    value: Any = ""


class TemplateOptions(ConfigModel):
    label: str = ""
    required: bool = False
    options: Optional[list[SelectOption]] = None
    placeholder: Optional[str] = None
    type: Optional[str] = None  # "number", "text", "email", ...
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    step: Optional[str] = None
    pattern: Optional[str] = None
    multiple: Optional[bool] = None
    accept: Optional[str] = None  # ".pdf,.doc,.docx"
    max_file_size: Optional[int] = None  # bytes
    max_file_count: Optional[int] = None


class FieldValidation(ConfigModel):
    messages: Optional[dict[str, str]] = None


class FormField(ConfigModel):
    key: str
    type: str = ""
    template_options: TemplateOptions = Field(default_factory=TemplateOptions)
    hide_expression: Optional[str] = None
    validation: Optional[FieldValidation] = None

    @property
    def label(self) -> str:
        return self.template_options.label or self.key

    def message(self, rule: str) -> Optional[str]:
        """Return the configured message override for ``rule`` if any."""
        if self.validation and self.validation.messages:
            return self.validation.messages.get(rule)
        return None


class StepConfiguration(ConfigModel):
    can_send_back: bool = False
    estimated_duration_hours: int = 0
    next_step: Optional[str] = None
    previous_step: Optional[str] = None
    is_first_step: Optional[bool] = None
    is_last_step: Optional[bool] = None
    is_mandatory: bool = False
    validation: Optional[dict[str, Any]] = None


class ValidationMessage(ConfigModel):
    rule_id: str = ""
    message: str = ""


class WorkflowStep(ConfigModel):
    """Field, actor and validation configuration for one step."""

    step_id: str
    name: str = ""
    actor: str = ""
    description: str = ""
    fields: Optional[list[FormField]] = None
    json_schema: Optional[dict[str, Any]] = Field(default=None, alias="schema")
    ui_schema: Optional[dict[str, Any]] = Field(default=None, alias="uischema")
    step_config: StepConfiguration = Field(default_factory=StepConfiguration)
    validations: list[str] = Field(default_factory=list)
    validation_messages: Optional[list[ValidationMessage]] = None

    def message_for(self, rule_id: str) -> Optional[str]:
        for item in self.validation_messages or []:
            if item.rule_id == rule_id:
                return item.message
        return None


class FileMetadata(ConfigModel):
    """Metadata describing an uploaded file attached to a form field."""

    field_key: str = ""
    original_file_name: str = ""
    stored_file_name: str = ""
    content_type: str = ""
    file_size_bytes: int = 0
    file_extension: str = ""
    uploaded_at: Optional[datetime] = None
    uploaded_by: str = ""
    storage_path: str = ""
    url: Optional[str] = None
