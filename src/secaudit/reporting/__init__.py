from .compliance import (
    ChecklistItem,
    ComplianceReport,
    ComplianceReporter,
    ComplianceState,
)

__all__ = [
    "ChecklistItem",
    "ComplianceReport",
    "ComplianceReporter",
    "ComplianceState",
]
