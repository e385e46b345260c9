"""
Validation Module

Structural and type diagnostics for workflow graphs.
"""

from .validator import (
    GraphValidator,
    Severity,
    ValidationIssue,
    ValidationResult,
    validate_connection,
)
from .widgets import WIDGET_CHECKS, check_widget_value

__all__ = [
    "GraphValidator",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "validate_connection",
    "WIDGET_CHECKS",
    "check_widget_value",
]
