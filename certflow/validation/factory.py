"""Build validation rules from step definitions."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from ..errors import MalformedStepError
from ..models import FormField, WorkflowStep
from .base import ValidationRule
from .rules import (
    FileUploadRule,
    MinTableEntriesRule,
    NumericRangeRule,
    PatternRule,
    RequiredFieldRule,
    RequiredIfRule,
)

logger = logging.getLogger(__name__)


class RuleKind(str, Enum):
    """Kinds of rules a step can declare."""

    REQUIRED = "required"
    REQUIRED_IF = "requiredIf"
    NUMERIC = "numeric"
    NUMERIC_RANGE = "numericRange"
    PATTERN = "pattern"
    FILE_UPLOAD = "fileUpload"
    MIN_TABLE_ENTRIES = "minTableEntries"


# stepConfig.validation "type" values that denote a table field.
TABLE_VALIDATION_TARGETS: dict[str, Optional[str]] = {
    "brandTable": "brandTable",
    "productTable": "productTable",
    "products": "productTable",
    "table": None,  # target given explicitly via "targetField"
}


def _decimal(value: Any, what: str) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise MalformedStepError(f"{what} is not a number: {value!r}") from exc


def _optional_decimal(config: Mapping[str, Any], key: str) -> Optional[Decimal]:
    value = config.get(key)
    return None if value is None else _decimal(value, key)


def _target(config: Mapping[str, Any]) -> str:
    target = config.get("target_field")
    if not target:
        raise MalformedStepError("rule configuration is missing 'target_field'")
    return str(target)


def _split(value: Any) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value or []]


def _build_required(config: Mapping[str, Any]) -> ValidationRule:
    return RequiredFieldRule(_target(config), error_message=config.get("error_message"))


def _build_required_if(config: Mapping[str, Any]) -> ValidationRule:
    dependent = config.get("dependent_field")
    if not dependent:
        raise MalformedStepError("requiredIf rule is missing 'dependent_field'")
    return RequiredIfRule(
        str(dependent),
        required_values=_split(config.get("required_values")),
        target_fields=_split(config.get("target_fields")),
        error_message=config.get("error_message"),
    )


def _build_numeric(config: Mapping[str, Any]) -> ValidationRule:
    return NumericRangeRule(
        _target(config),
        min_value=_optional_decimal(config, "min"),
        max_value=_optional_decimal(config, "max"),
        label=config.get("label"),
        error_message=config.get("error_message"),
        rule_id=RuleKind.NUMERIC.value,
    )


def _build_numeric_range(config: Mapping[str, Any]) -> ValidationRule:
    return NumericRangeRule(
        _target(config),
        min_value=_optional_decimal(config, "min"),
        max_value=_optional_decimal(config, "max"),
        dependent_field=config.get("dependent_field"),
        label=config.get("label"),
        error_message=config.get("error_message"),
    )


def _build_pattern(config: Mapping[str, Any]) -> ValidationRule:
    pattern = config.get("pattern")
    if not pattern:
        raise MalformedStepError("pattern rule is missing 'pattern'")
    return PatternRule(
        _target(config), str(pattern), error_message=config.get("error_message")
    )


def _build_file_upload(config: Mapping[str, Any]) -> ValidationRule:
    max_count = config.get("max_file_count")
    max_size = config.get("max_file_size_bytes")
    return FileUploadRule(
        _target(config),
        multiple=bool(config.get("multiple", False)),
        max_file_count=int(max_count) if max_count is not None else None,
        max_file_size_bytes=int(max_size) if max_size is not None else None,
        allowed_extensions=_split(config.get("allowed_extensions")),
        error_message=config.get("error_message"),
    )


def _build_min_table_entries(config: Mapping[str, Any]) -> ValidationRule:
    try:
        min_required = int(config.get("min_required", 1))
    except (TypeError, ValueError) as exc:
        raise MalformedStepError(
            f"minRequired is not an integer: {config.get('min_required')!r}"
        ) from exc
    return MinTableEntriesRule(
        _target(config),
        min_required=min_required,
        error_message=config.get("error_message"),
    )


RULE_BUILDERS: dict[RuleKind, Callable[[Mapping[str, Any]], ValidationRule]] = {
    RuleKind.REQUIRED: _build_required,
    RuleKind.REQUIRED_IF: _build_required_if,
    RuleKind.NUMERIC: _build_numeric,
    RuleKind.NUMERIC_RANGE: _build_numeric_range,
    RuleKind.PATTERN: _build_pattern,
    RuleKind.FILE_UPLOAD: _build_file_upload,
    RuleKind.MIN_TABLE_ENTRIES: _build_min_table_entries,
}


class RuleFactory:
    """Translate a step's declared constraints into rule instances.

    Rules are gathered from four places, in this order: the legacy
    ``fields`` list, the JSON-Forms ``schema``, ``stepConfig.validation``
    and the ``validations`` strings. The factory has no side effects.
    """

    def create_rule(
        self, kind: RuleKind | str, config: Mapping[str, Any]
    ) -> ValidationRule:
        try:
            kind = RuleKind(kind)
        except ValueError as exc:
            raise MalformedStepError(f"Unknown validation rule type: {kind}") from exc
        return RULE_BUILDERS[kind](config)

    def create_rules_from_step(self, step: WorkflowStep) -> list[ValidationRule]:
        rules: list[ValidationRule] = []
        for form_field in step.fields or []:
            rules.extend(self._rules_for_field(form_field))
        if step.json_schema:
            rules.extend(self._rules_for_schema(step.json_schema))
        rules.extend(self._rules_for_step_config(step))
        rules.extend(self._rules_for_validations(step))
        logger.debug(f"Built {len(rules)} validation rules for step {step.step_id}")
        return rules

    # ------------------------------------------------------------------
    def _rules_for_field(self, form_field: FormField) -> list[ValidationRule]:
        options = form_field.template_options
        key = form_field.key
        label = form_field.label
        rules: list[ValidationRule] = []

        if options.required:
            rules.append(
                self.create_rule(
                    RuleKind.REQUIRED,
                    {
                        "target_field": key,
                        "error_message": form_field.message("required")
                        or f"{label} is required",
                    },
                )
            )

        if options.type == "number" or form_field.type == "number":
            rules.append(
                self.create_rule(
                    RuleKind.NUMERIC,
                    {
                        "target_field": key,
                        "label": label,
                        "min": options.min,
                        "max": options.max,
                    },
                )
            )

        if options.pattern:
            rules.append(
                self.create_rule(
                    RuleKind.PATTERN,
                    {
                        "target_field": key,
                        "pattern": options.pattern,
                        "error_message": form_field.message("pattern")
                        or f"{label} has invalid format",
                    },
                )
            )

        if form_field.type == "file":
            rules.append(
                self.create_rule(
                    RuleKind.FILE_UPLOAD,
                    {
                        "target_field": key,
                        "multiple": options.multiple or False,
                        "max_file_count": options.max_file_count,
                        "max_file_size_bytes": options.max_file_size,
                        "allowed_extensions": options.accept or "",
                        "error_message": form_field.message("fileUpload")
                        or f"{label} has invalid file upload",
                    },
                )
            )
        return rules

    def _rules_for_schema(self, schema: Mapping[str, Any]) -> list[ValidationRule]:
        properties = schema.get("properties") or {}
        if not isinstance(properties, Mapping):
            raise MalformedStepError("schema 'properties' must be an object")
        rules: list[ValidationRule] = []

        for key in schema.get("required") or []:
            prop = properties.get(key) or {}
            label = prop.get("title") or key
            rules.append(
                self.create_rule(
                    RuleKind.REQUIRED,
                    {"target_field": key, "error_message": f"{label} is required"},
                )
            )

        for key, prop in properties.items():
            if not isinstance(prop, Mapping):
                raise MalformedStepError(f"schema property {key!r} must be an object")
            label = prop.get("title") or key
            prop_type = prop.get("type")
            if prop_type in ("number", "integer"):
                rules.append(
                    self.create_rule(
                        RuleKind.NUMERIC,
                        {
                            "target_field": key,
                            "label": label,
                            "min": prop.get("minimum"),
                            "max": prop.get("maximum"),
                        },
                    )
                )
            if prop.get("pattern"):
                rules.append(
                    self.create_rule(
                        RuleKind.PATTERN,
                        {
                            "target_field": key,
                            "pattern": prop["pattern"],
                            "error_message": f"{label} has invalid format",
                        },
                    )
                )
            if prop_type == "array" and prop.get("minItems") is not None:
                rules.append(
                    self.create_rule(
                        RuleKind.MIN_TABLE_ENTRIES,
                        {"target_field": key, "min_required": prop["minItems"]},
                    )
                )
        return rules

    def _rules_for_step_config(self, step: WorkflowStep) -> list[ValidationRule]:
        validation = step.step_config.validation
        if not validation:
            return []
        validation_type = validation.get("type")
        if validation_type not in TABLE_VALIDATION_TARGETS:
            return []

        target = TABLE_VALIDATION_TARGETS[validation_type] or validation.get(
            "targetField"
        )
        if not target:
            raise MalformedStepError(
                f"Step {step.step_id}: table validation is missing 'targetField'"
            )
        config: dict[str, Any] = {"target_field": target}
        if "minRequired" in validation:
            config["min_required"] = validation["minRequired"]
        if validation.get("message"):
            config["error_message"] = validation["message"]
        return [self.create_rule(RuleKind.MIN_TABLE_ENTRIES, config)]

    def _rules_for_validations(self, step: WorkflowStep) -> list[ValidationRule]:
        rules: list[ValidationRule] = []
        for reference in step.validations:
            parts = reference.split(":")
            kind = parts[0]
            message = step.message_for(kind)

            if kind == RuleKind.REQUIRED_IF.value:
                if len(parts) < 4:
                    raise MalformedStepError(
                        f"Step {step.step_id}: expected "
                        f"'requiredIf:field:values:targets', got {reference!r}"
                    )
                rules.append(
                    self.create_rule(
                        RuleKind.REQUIRED_IF,
                        {
                            "dependent_field": parts[1],
                            "required_values": parts[2],
                            "target_fields": parts[3],
                            "error_message": message,
                        },
                    )
                )
            elif kind == RuleKind.NUMERIC_RANGE.value:
                if len(parts) < 4:
                    raise MalformedStepError(
                        f"Step {step.step_id}: expected "
                        f"'numericRange:field:min:max', got {reference!r}"
                    )
                rules.append(
                    self.create_rule(
                        RuleKind.NUMERIC_RANGE,
                        {
                            "target_field": parts[1],
                            "min": _decimal(parts[2], "numericRange minimum"),
                            "max": _decimal(parts[3], "numericRange maximum"),
                            "dependent_field": parts[4] if len(parts) > 4 else None,
                            "error_message": message,
                        },
                    )
                )
            else:
                logger.debug(
                    f"Step {step.step_id}: validation {kind!r} has no generic rule"
                )
        return rules
