"""
API Schemas.

This module contains Pydantic models used for API request bodies and response validation.
These schemas define the interface contract between the client and the server.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from trustgate_ai.trust_core.schemas.domain import (
    AuditRecord,
    ClassificationResult,
    Decision,
    Operation,
    OperationContext,
    OperationType,
    RiskFlag,
)
from trustgate_ai.trust_core.security import SecurityState


class OperationRequest(BaseModel):
    """
    Schema for submitting an operation for a trust decision.

    The ``operation_type`` is the caller's claim only; the server classifies
    the command itself.
    """

    command: str = Field(..., description="The executable, e.g. 'git' or './scripts/deploy.sh'.", examples=["git"])
    args: List[str] = Field(default_factory=list, description="Command arguments.", examples=[["status"]])
    operation_type: OperationType = Field(
        default=OperationType.unknown, description="Type claimed by the caller. Informational only."
    )
    context: OperationContext = Field(default_factory=OperationContext, description="Caller context.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "command": "git",
                "args": ["push", "origin", "main"],
                "context": {"working_directory": "/work/app", "user_id": "agent-1"},
            }
        }
    )

    def to_operation(self) -> Operation:
        return Operation(
            command=self.command,
            args=tuple(self.args),
            operation_type=self.operation_type,
            context=self.context,
        )


class ClassificationData(BaseModel):
    operation_type: OperationType
    risk_flags: List[RiskFlag]
    is_dangerous: bool

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "ClassificationData":
        return cls(
            operation_type=result.operation_type,
            risk_flags=sorted(result.risk_flags, key=lambda f: f.value),
            is_dangerous=result.is_dangerous,
        )


class DecisionResponse(BaseModel):
    """Schema for the outcome of a trust decision."""

    decision: Decision
    classification: ClassificationData
    sequence_number: int = Field(..., description="Audit sequence number of the decision.")


class AuditFailureResponse(BaseModel):
    """Returned with 503 when the decision could not be audited."""

    detail: str
    decision: Optional[Decision] = Field(default=None, description="Manual fallback decision to act on.")


class PolicyConflictResponse(BaseModel):
    detail: str
    fields: List[str]
    pattern: str


class AuditPage(BaseModel):
    """A page of audit records in sequence order."""

    records: List[AuditRecord]
    next_sequence: Optional[int] = Field(
        default=None, description="Pass as from_sequence to fetch the next page; null when exhausted."
    )


class SecurityModeRequest(BaseModel):
    """Operator request to switch the approval mode."""

    reason: str = Field(..., min_length=1, description="Why the mode is being changed. Recorded in the event log.")


class SecurityModeResponse(BaseModel):
    changed: bool = Field(..., description="False when the requested mode was already active.")
    state: SecurityState


class AuditHealth(BaseModel):
    last_sequence: int = Field(..., description="Highest audit sequence number issued so far.")
    directory: Optional[str] = Field(default=None, description="Audit directory; null for in-memory stores.")
    writable: bool = Field(..., description="False when the audit directory is missing or not writable.")


class MetricsHealth(BaseModel):
    consumer_running: bool = Field(..., description="Whether the background ingest thread is alive.")
    dropped_samples: int


class HealthResponse(BaseModel):
    """Liveness of the components every decision depends on."""

    status: str = Field(..., description="'ok', or 'degraded' when decisions cannot be audited or metrics stall.")
    audit: AuditHealth
    metrics: MetricsHealth
    manual_only: bool = Field(..., description="Whether manual-only approval mode is active.")
