"""Validation rules, rule factory and business-rule registry."""

from __future__ import annotations

from .base import ValidationRule
from .business import BusinessRule, BusinessRuleRegistry, default_business_rules
from .factory import RuleFactory, RuleKind
from .rules import (
    FileUploadRule,
    MinTableEntriesRule,
    NumericRangeRule,
    PatternRule,
    RequiredFieldRule,
    RequiredIfRule,
)

__all__ = [
    "ValidationRule",
    "RequiredFieldRule",
    "RequiredIfRule",
    "NumericRangeRule",
    "PatternRule",
    "FileUploadRule",
    "MinTableEntriesRule",
    "RuleKind",
    "RuleFactory",
    "BusinessRule",
    "BusinessRuleRegistry",
    "default_business_rules",
]
