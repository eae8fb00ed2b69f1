"""Field-level diffing for the step history audit trail."""

from __future__ import annotations

from typing import Any, Mapping

from .contracts import FieldChange


def track_field_changes(
    old_data: Mapping[str, Any], new_data: Mapping[str, Any]
) -> dict[str, FieldChange]:
    """Return the fields of ``new_data`` that are new or differ from ``old_data``.

    Keys present only in ``old_data`` are not reported.
    """
    changes: dict[str, FieldChange] = {}
    for key, value in new_data.items():
        if key not in old_data:
            changes[key] = FieldChange(old_value=None, new_value=value)
        elif old_data[key] != value:
            changes[key] = FieldChange(old_value=old_data[key], new_value=value)
    return changes
