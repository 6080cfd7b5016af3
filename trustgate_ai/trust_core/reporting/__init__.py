from .policy_changes import (
    ChangeType,
    ImpactAnalysis,
    PolicyChange,
    PolicyChangeReport,
    PolicyChangeReporter,
    WorkflowDisruption,
)

__all__ = [
    "ChangeType",
    "ImpactAnalysis",
    "PolicyChange",
    "PolicyChangeReport",
    "PolicyChangeReporter",
    "WorkflowDisruption",
]
