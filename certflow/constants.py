"""Shared constants for certflow."""

COMPLETED_STEP = "completed"

STATUS_DRAFT = "draft"
STATUS_IN_PROGRESS = "in_progress"
STATUS_ON_HOLD = "on_hold"
STATUS_PENDING_APPROVAL = "pending_approval"
STATUS_REVISION = "revision"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_FAILED = "failed"
STATUS_EXPIRED = "expired"

# Statuses in which applicants may still change form data.
EDITABLE_STATUSES = frozenset({STATUS_DRAFT, STATUS_IN_PROGRESS, STATUS_REVISION})

DEFAULT_PRIORITY = 3  # 1=urgent, 2=high, 3=normal
DEFAULT_WORKFLOW_TYPE = "new_application"
SYSTEM_ACTOR = "system"
ADMIN_ROLE = "admin"
