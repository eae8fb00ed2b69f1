"""Concrete validation rules."""

from __future__ import annotations

import json
import re
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..contracts import RuleViolation, ValidationResult
from ..models import FileMetadata
from .base import ValidationRule, as_text, is_blank, parse_decimal


class RequiredFieldRule(ValidationRule):
    """Field must be present with a non-blank value."""

    rule_id = "required"

    def __init__(self, target_field: str, error_message: Optional[str] = None) -> None:
        super().__init__(error_message)
        self.target_field = target_field

    def validate(
        self, data: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ValidationResult:
        if self.target_field not in data or is_blank(data[self.target_field]):
            message = self.error_message or f"{self.target_field} is required"
            return ValidationResult(errors=[self.violation(message, self.target_field)])
        return ValidationResult.success()


class RequiredIfRule(ValidationRule):
    """Target fields become required when the dependent field holds a trigger value."""

    rule_id = "requiredIf"

    def __init__(
        self,
        dependent_field: str,
        required_values: Iterable[str],
        target_fields: Iterable[str],
        error_message: Optional[str] = None,
    ) -> None:
        super().__init__(error_message)
        self.dependent_field = dependent_field
        self.required_values = list(required_values)
        self.target_fields = list(target_fields)

    def validate(
        self, data: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ValidationResult:
        if self.dependent_field not in data:
            return ValidationResult.success()

        dependent_value = as_text(data[self.dependent_field])
        if dependent_value not in self.required_values:
            return ValidationResult.success()

        errors = [
            self.violation(
                self.error_message
                or f"{target} is required when {self.dependent_field} is {dependent_value}",
                target,
            )
            for target in self.target_fields
            if target not in data or is_blank(data[target])
        ]
        return ValidationResult(errors=errors)


class NumericRangeRule(ValidationRule):
    """Field must parse as a decimal within optional ``[min_value, max_value]``.

    Blank values are left to :class:`RequiredFieldRule`. When
    ``dependent_field`` is set the rule only applies if that field was
    submitted at all.
    """

    rule_id = "numericRange"

    def __init__(
        self,
        target_field: str,
        min_value: Optional[Decimal] = None,
        max_value: Optional[Decimal] = None,
        dependent_field: Optional[str] = None,
        label: Optional[str] = None,
        error_message: Optional[str] = None,
        rule_id: Optional[str] = None,
    ) -> None:
        super().__init__(error_message)
        self.target_field = target_field
        self.min_value = min_value
        self.max_value = max_value
        self.dependent_field = dependent_field
        self.label = label or target_field
        if rule_id:
            self.rule_id = rule_id

    def validate(
        self, data: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ValidationResult:
        if self.dependent_field and self.dependent_field not in data:
            return ValidationResult.success()
        if self.target_field not in data or is_blank(data[self.target_field]):
            return ValidationResult.success()

        number = parse_decimal(data[self.target_field])
        if number is None:
            return self._fail(f"{self.label} must be a valid number")
        if self.min_value is not None and number < self.min_value:
            return self._fail(
                self.error_message or f"{self.label} must be at least {self.min_value}"
            )
        if self.max_value is not None and number > self.max_value:
            return self._fail(
                self.error_message or f"{self.label} must not exceed {self.max_value}"
            )
        return ValidationResult.success()

    def _fail(self, message: str) -> ValidationResult:
        return ValidationResult(errors=[self.violation(message, self.target_field)])


class PatternRule(ValidationRule):
    """Non-blank values must contain a match for ``pattern``."""

    rule_id = "pattern"

    def __init__(
        self, target_field: str, pattern: str, error_message: Optional[str] = None
    ) -> None:
        super().__init__(error_message)
        self.target_field = target_field
        self.pattern = pattern

    def validate(
        self, data: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ValidationResult:
        if self.target_field not in data:
            return ValidationResult.success()
        value = as_text(data[self.target_field])
        if not value:
            return ValidationResult.success()

        try:
            matched = re.search(self.pattern, value) is not None
        except re.error as exc:
            return ValidationResult(
                errors=[
                    self.violation(f"Pattern validation error: {exc}", self.target_field)
                ]
            )
        if matched:
            return ValidationResult.success()
        message = self.error_message or f"{self.target_field} has invalid format"
        return ValidationResult(errors=[self.violation(message, self.target_field)])


def _format_bytes(size: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    order = 0
    while value >= 1024 and order < len(units) - 1:
        order += 1
        value /= 1024
    return f"{value:.2f}".rstrip("0").rstrip(".") + f" {units[order]}"


def _normalize_extension(extension: str) -> str:
    extension = extension.strip().lower()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return extension


def _file_extension(file: FileMetadata) -> str:
    extension = file.file_extension
    if not extension and "." in file.original_file_name:
        extension = file.original_file_name.rsplit(".", 1)[-1]
    return _normalize_extension(extension)


def _coerce_file(item: Any) -> Optional[FileMetadata]:
    try:
        return FileMetadata.model_validate(item)
    except PydanticValidationError:
        return None


def _coerce_files(value: Any) -> Optional[list[Optional[FileMetadata]]]:
    """Return one entry per submitted file, ``None`` for unreadable metadata.

    Returns ``None`` when ``value`` is not a file value at all.
    """
    if isinstance(value, (FileMetadata, Mapping)):
        return [_coerce_file(value)]
    if isinstance(value, (list, tuple)) and all(
        isinstance(item, (FileMetadata, Mapping)) for item in value
    ):
        return [_coerce_file(item) for item in value]
    return None


class FileUploadRule(ValidationRule):
    """Checks multiplicity, count, size and extension of uploaded files.

    All violations across all files are reported together.
    """

    rule_id = "fileUpload"

    def __init__(
        self,
        target_field: str,
        multiple: bool = False,
        max_file_count: Optional[int] = None,
        max_file_size_bytes: Optional[int] = None,
        allowed_extensions: Sequence[str] = (),
        error_message: Optional[str] = None,
    ) -> None:
        super().__init__(error_message)
        self.target_field = target_field
        self.multiple = multiple
        self.max_file_count = max_file_count
        self.max_file_size_bytes = max_file_size_bytes
        self.allowed_extensions = [
            _normalize_extension(ext) for ext in allowed_extensions if ext.strip()
        ]

    def validate(
        self, data: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ValidationResult:
        if self.target_field not in data:
            return ValidationResult.success()
        files = _coerce_files(data[self.target_field])
        if files is None:
            return ValidationResult.success()

        field = self.target_field
        errors: list[RuleViolation] = []
        if not self.multiple and len(files) > 1:
            errors.append(self.violation(f"{field} accepts only one file", field))
        if self.max_file_count is not None and len(files) > self.max_file_count:
            errors.append(
                self.violation(
                    f"{field} accepts maximum {self.max_file_count} files", field
                )
            )

        for index, file in enumerate(files, start=1):
            if file is None:
                errors.append(
                    self.violation(f"{field}: file {index} has invalid metadata", field)
                )
                continue
            if (
                self.max_file_size_bytes is not None
                and file.file_size_bytes > self.max_file_size_bytes
            ):
                errors.append(
                    self.violation(
                        f"{file.original_file_name}: File size "
                        f"({_format_bytes(file.file_size_bytes)}) exceeds maximum "
                        f"allowed size ({_format_bytes(self.max_file_size_bytes)})",
                        field,
                    )
                )
            extension = _file_extension(file)
            if self.allowed_extensions and extension not in self.allowed_extensions:
                errors.append(
                    self.violation(
                        f"{file.original_file_name}: File type '{file.file_extension}' "
                        f"is not allowed. Allowed types: {', '.join(self.allowed_extensions)}",
                        field,
                    )
                )
        return ValidationResult(errors=errors)


def _count_entries(value: Any) -> int:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return 0
    if isinstance(value, (list, tuple)):
        return len(value)
    return 0


class MinTableEntriesRule(ValidationRule):
    """Array-valued field must contain at least ``min_required`` rows.

    Accepts native lists as well as JSON-encoded arrays.
    """

    rule_id = "minTableEntries"

    def __init__(
        self,
        target_field: str,
        min_required: int = 1,
        error_message: Optional[str] = None,
    ) -> None:
        super().__init__(error_message)
        self.target_field = target_field
        self.min_required = min_required

    def validate(
        self, data: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ValidationResult:
        value = data.get(self.target_field)
        if value is None:
            message = (
                self.error_message
                or f"Please add at least {self.min_required} entry to {self.target_field}"
            )
            return ValidationResult(errors=[self.violation(message, self.target_field)])

        count = _count_entries(value)
        if count < self.min_required:
            message = self.error_message or (
                f"Please add at least {self.min_required} entry to {self.target_field}. "
                f"Currently {count} entries found."
            )
            return ValidationResult(errors=[self.violation(message, self.target_field)])
        return ValidationResult.success()
