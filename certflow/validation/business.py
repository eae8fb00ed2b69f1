"""Step-specific business rules that do not fit the generic rule kinds."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Iterable, Mapping

from ..contracts import ValidationResult
from .base import as_text, parse_decimal

BusinessRule = Callable[[Mapping[str, Any], Mapping[str, Any]], ValidationResult]
"""Predicate over ``(form_data, current_data)`` returning violations."""


class BusinessRuleRegistry:
    """Maps step ids to the business rules run when that step is validated."""

    def __init__(self) -> None:
        self._rules: dict[str, list[BusinessRule]] = defaultdict(list)

    def register(self, step_ids: Iterable[str], rule: BusinessRule) -> BusinessRule:
        for step_id in step_ids:
            self._rules[step_id].append(rule)
        return rule

    def rule(self, *step_ids: str) -> Callable[[BusinessRule], BusinessRule]:
        """Decorator form of :meth:`register`."""

        def decorator(func: BusinessRule) -> BusinessRule:
            return self.register(step_ids, func)

        return decorator

    def rules_for(self, step_id: str) -> list[BusinessRule]:
        return list(self._rules.get(step_id, ()))

    def evaluate(
        self,
        step_id: str,
        form_data: Mapping[str, Any],
        current_data: Mapping[str, Any],
    ) -> ValidationResult:
        return ValidationResult.combine(
            rule(form_data, current_data) for rule in self.rules_for(step_id)
        )


def require_document(
    form_data: Mapping[str, Any], current_data: Mapping[str, Any]
) -> ValidationResult:
    """At least one submitted key must refer to a document or file."""
    if any("document" in key or "file" in key for key in form_data):
        return ValidationResult.success()
    return ValidationResult.failure(
        "At least one document must be uploaded", rule_id="documentRequired"
    )


SAFETY_SCORE_THRESHOLD = 60


def safety_score_gate(
    form_data: Mapping[str, Any], current_data: Mapping[str, Any]
) -> ValidationResult:
    """An application cannot be approved with a stored safety score below 60."""
    if "safetyScore" not in current_data or "finalDecision" not in form_data:
        return ValidationResult.success()
    if as_text(form_data["finalDecision"]) != "approve":
        return ValidationResult.success()

    score = parse_decimal(current_data["safetyScore"])
    if score is not None and score < SAFETY_SCORE_THRESHOLD:
        return ValidationResult.failure(
            f"Cannot approve application with safety score below {SAFETY_SCORE_THRESHOLD}",
            rule_id="safetyScore",
            field="finalDecision",
        )
    return ValidationResult.success()


def default_business_rules() -> BusinessRuleRegistry:
    """Registry preloaded with the certification business rules."""
    registry = BusinessRuleRegistry()
    registry.register(["CT401_step2_document_upload", "document_upload"], require_document)
    registry.register(["CT401_step6_final_approval", "final_approval"], safety_score_gate)
    return registry
