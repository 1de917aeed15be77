"""Error hierarchy for channel binding.

Every error carries a code, a category and a severity so the inspector can
show it without parsing messages. Compiler failures are not wrapped here:
they surface as whatever altair / vl-convert raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Binding context attached to an error for logs and the inspector."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    mark_id: Optional[int] = None
    ds_id: Optional[int] = None
    property: Optional[str] = None
    channel: Optional[str] = None
    debug_info: Optional[Dict[str, Any]] = None


class VizBindError(Exception):
    """Base exception for all vizbind errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    @property
    def recoverable(self) -> bool:
        return self.category in (ErrorCategory.BUSINESS_RULE, ErrorCategory.RESOURCE_NOT_FOUND)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "recoverable": self.recoverable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "mark_id": self.context.mark_id,
                    "ds_id": self.context.ds_id,
                    "property": self.context.property,
                    "channel": self.context.channel,
                },
            }
        }


# ─── Precondition errors ────────────────────────────────────────

class CrossPipelineError(VizBindError):
    """Field and mark come from different pipelines."""
    def __init__(self, mark_pipeline: Any, field_pipeline: Any, context: Optional[ErrorContext] = None):
        super().__init__(
            "Mark and field must be from the same pipeline.",
            "CROSS_PIPELINE_BINDING", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context,
        )
        self.mark_pipeline = mark_pipeline
        self.field_pipeline = field_pipeline


class ResourceNotFoundError(VizBindError):
    """A primitive referenced by a binding request does not exist."""
    def __init__(self, resource_type: str, resource_id: Any, context: Optional[ErrorContext] = None):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class UnsupportedMarkError(VizBindError):
    """The mark's type has no Vega-Lite counterpart."""
    def __init__(self, mark_type: Any, context: Optional[ErrorContext] = None):
        super().__init__(
            f"Mark type '{mark_type}' cannot be bound through Vega-Lite",
            "UNSUPPORTED_MARK_TYPE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context,
        )
        self.mark_type = mark_type


# ─── Internal errors ────────────────────────────────────────────

class HistoryError(VizBindError):
    """History batch opened twice, or closed without being opened."""
    def __init__(self, message: str, context: Optional[ErrorContext] = None):
        super().__init__(
            message, "HISTORY_BATCH_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.CRITICAL, context,
        )


class PhaseOrderError(VizBindError):
    """Guides were derived before the scale set was finalized."""
    def __init__(self, context: Optional[ErrorContext] = None):
        super().__init__(
            "Guides can only be derived after unused scales are cleaned up.",
            "PHASE_ORDER_VIOLATION", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context,
        )
