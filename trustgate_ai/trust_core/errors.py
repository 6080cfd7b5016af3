"""Error types for the trust core package.

Defines a small hierarchy of exceptions. Only ``AuditError`` crosses the
decision boundary; rate limiting is a decision outcome, not an error, and the
classifier is total so it has no error type of its own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .schemas.domain import Decision


class TrustPolicyError(Exception):
    """Base error for all trust core exceptions."""


class PolicyConflict(TrustPolicyError):
    """Raised when a policy document lists the same pattern as both allowed and denied."""

    def __init__(self, fields: Sequence[str], pattern: str) -> None:
        self.fields = tuple(fields)
        self.pattern = pattern
        super().__init__(f"Pattern '{pattern}' is both auto-approved and denied in: {', '.join(self.fields)}")


class PolicyLoadError(TrustPolicyError):
    """Raised when a policy document cannot be read or parsed."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"Failed to load policy from '{source}': {message}")


class AuditError(TrustPolicyError):
    """Raised when an audit record could not be durably persisted.

    Callers must treat the operation as requiring manual approval.
    ``fallback_decision`` carries the manual decision to act on when the
    error is raised from the decision path.
    """

    def __init__(self, message: str, *, fallback_decision: Optional["Decision"] = None) -> None:
        self.fallback_decision = fallback_decision
        super().__init__(message)

    def with_fallback(self, decision: "Decision") -> "AuditError":
        """Return a copy of this error carrying ``decision`` as the fallback."""
        return AuditError(str(self), fallback_decision=decision)
