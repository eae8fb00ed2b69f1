"""Base interface for validation rules."""

from __future__ import annotations

import abc
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from ..contracts import RuleViolation, ValidationResult

_PLAIN_DECIMAL = re.compile(r"^[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)$")


class ValidationRule(metaclass=abc.ABCMeta):
    """Stateless predicate over submitted form data.

    Rules never raise for bad input; every problem is reported as a
    violation so that callers can present the full list at once.
    """

    rule_id: str = ""

    def __init__(self, error_message: Optional[str] = None) -> None:
        self.error_message = error_message

    @abc.abstractmethod
    def validate(
        self, data: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ValidationResult:
        """Check ``data`` and return the violations found."""
        raise NotImplementedError

    def violation(self, message: str, field: Optional[str] = None) -> RuleViolation:
        return RuleViolation(rule_id=self.rule_id, field=field, message=message)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        attrs = ", ".join(
            f"{k}={v!r}" for k, v in vars(self).items() if v not in (None, "", [])
        )
        return f"{type(self).__name__}({attrs})"


def as_text(value: Any) -> str:
    """String form of a submitted value; ``None`` becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


def is_blank(value: Any) -> bool:
    return not as_text(value).strip()


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse ``value`` as a finite decimal, returning ``None`` when it is not one.

    Text must be plain positional notation; exponents and digit separators
    such as ``"1e3"`` or ``"1_000"`` are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        text = as_text(value).strip()
        if not _PLAIN_DECIMAL.match(text):
            return None
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number
