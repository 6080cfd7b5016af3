"""Trust decision engine.

``DecisionEngine`` turns a classified operation and a policy snapshot into a
``Decision``. Evaluation follows a fixed order and the first step that
produces a verdict wins:

1. deny list (and suspicious command lines, when enabled) -> manual
2. manual-only mode switched on by the security monitor -> manual
3. hourly auto-approval limit already reached -> manual, rate limited
4. dangerous operation -> manual; allow-list match -> auto
5. anything else -> manual

A deny entry therefore always beats an allow entry, and an operation with any
risk flag is never auto-approved. Suspicious hits are reported to the
``SecurityMonitor``; a high-severity hit switches it to manual-only mode.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .classifier import OperationClassifier, command_name
from .policy.matcher import MatchKind, Rule
from .policy.models import PolicyDocument, compile_rules, deny_rules
from .policy.store import PolicyRuleStore
from .rate_limiter import HourlyRateLimiter
from .schemas.domain import ClassificationResult, Decision, DecisionOutcome, Operation, OperationType
from .security import SecurityMonitor, SecuritySeverity

logger = logging.getLogger(__name__)

REASON_DENIED = "explicitly denied"
REASON_SUSPICIOUS = "suspicious pattern detected"
REASON_MANUAL_MODE = "manual-only mode active"
REASON_RATE_LIMITED = "rate limit exceeded"
REASON_DANGEROUS = "dangerous operation requires manual approval"
REASON_ALLOWED = "matched allow rule"
REASON_NO_MATCH = "no matching allow rule"

_SUSPICIOUS_PATTERNS = (
    ("directory_traversal", SecuritySeverity.medium, re.compile(r"\.\./")),
    ("system_access", SecuritySeverity.medium, re.compile(r"/etc/|/var/|/usr/|/root/")),
    ("pipe_execution", SecuritySeverity.high, re.compile(r"\b(?:curl|wget)\s+.*\|\s*(?:ba)?sh\b")),
    ("encoded_execution", SecuritySeverity.high, re.compile(r"\b(?:base64|eval)\b")),
)


@dataclass(frozen=True)
class SuspiciousMatch:
    patterns: Tuple[str, ...]
    severity: SecuritySeverity


def detect_suspicious(tokens: Sequence[str]) -> Optional[SuspiciousMatch]:
    """Match the command line against the suspicious pattern categories.

    ``tokens`` should start with the command basename, so an absolute
    executable path such as ``/usr/bin/git`` does not trip the system
    directory check.

    Returns:
        The matched category names and the highest severity among them, or
        None when nothing matched.
    """
    line = " ".join(tokens)
    hits = [(name, severity) for name, severity, pattern in _SUSPICIOUS_PATTERNS if pattern.search(line)]
    if not hits:
        return None
    severity = SecuritySeverity.high if any(s == SecuritySeverity.high for _, s in hits) else SecuritySeverity.medium
    return SuspiciousMatch(patterns=tuple(name for name, _ in hits), severity=severity)


def is_suspicious(tokens: Sequence[str]) -> bool:
    return detect_suspicious(tokens) is not None


class DecisionEngine:
    """Evaluate operations against the active policy.

    Mutable state lives in the shared ``HourlyRateLimiter`` and the
    ``SecurityMonitor``; every call to ``decide`` works on the policy
    snapshot it is given (or reads once from the store).
    """

    def __init__(
        self,
        store: PolicyRuleStore,
        rate_limiter: Optional[HourlyRateLimiter] = None,
        *,
        classifier: Optional[OperationClassifier] = None,
        security: Optional[SecurityMonitor] = None,
    ) -> None:
        self._store = store
        self._rate_limiter = rate_limiter or HourlyRateLimiter()
        self._classifier = classifier or OperationClassifier()
        self._security = security or SecurityMonitor()

    @property
    def rate_limiter(self) -> HourlyRateLimiter:
        return self._rate_limiter

    @property
    def security(self) -> SecurityMonitor:
        return self._security

    def decide(
        self,
        op: Operation,
        classification: ClassificationResult,
        policy: Optional[PolicyDocument] = None,
    ) -> Decision:
        """
        Decide whether ``op`` may proceed without a human.

        Args:
            op: The operation under evaluation.
            classification: The classifier's result for ``op``.
            policy: Policy snapshot captured at the start of evaluation.
                Defaults to the store's current document.

        Returns:
            The decision. This method does not raise for any operation.
        """
        snapshot = policy if policy is not None else self._store.current()
        tokens = (command_name(op.command), *op.args) if op.command.strip() else tuple(op.args)

        decision = self._evaluate(op, classification, snapshot, tokens)
        if snapshot.security.log_all_operations:
            logger.info(
                f"Decision {decision.outcome.value} for '{op.command_line}' "
                f"(type={classification.operation_type.value}, reason={decision.reason}, "
                f"rule={decision.matched_rule})"
            )
        return decision

    def _evaluate(
        self,
        op: Operation,
        classification: ClassificationResult,
        policy: PolicyDocument,
        tokens: Tuple[str, ...],
    ) -> Decision:
        for rule in deny_rules(policy):
            if rule.matches(tokens):
                return self._manual(op, classification, policy, REASON_DENIED, matched_rule=rule.label)

        if policy.security.suspicious_pattern_detection:
            suspicious = detect_suspicious(tokens)
            if suspicious is not None:
                self._security.record_suspicious(op, suspicious.patterns, suspicious.severity)
                return self._manual(op, classification, policy, REASON_SUSPICIOUS)

        if self._security.manual_only:
            return self._manual(op, classification, policy, REASON_MANUAL_MODE)

        limit = policy.security.max_auto_approval_per_hour
        if self._rate_limiter.peek() >= limit:
            return self._manual(op, classification, policy, REASON_RATE_LIMITED, rate_limited=True)

        if classification.is_dangerous:
            return self._manual(op, classification, policy, REASON_DANGEROUS)

        matched = self._match_allow(op, classification.operation_type, policy)
        if matched is not None:
            consumed = self._rate_limiter.try_consume(limit)
            if not consumed.allowed:
                return self._manual(
                    op, classification, policy, REASON_RATE_LIMITED, matched_rule=matched, rate_limited=True
                )
            return self._build(op, classification, policy, DecisionOutcome.auto, REASON_ALLOWED, matched_rule=matched)

        return self._manual(op, classification, policy, REASON_NO_MATCH)

    def _match_allow(self, op: Operation, op_type: OperationType, policy: PolicyDocument) -> Optional[str]:
        rules = policy.auto_approve
        name = command_name(op.command)

        if op_type == OperationType.git:
            return _first_match(
                compile_rules("autoApprove.gitOperations", rules.git_operations, MatchKind.prefix), op.args
            )
        if op_type == OperationType.file:
            return _first_match(
                compile_rules("autoApprove.fileOperations", rules.file_operations, MatchKind.exact), (name,)
            )
        if op_type == OperationType.cli:
            return self._match_cli(name, op.args, policy)
        if op_type == OperationType.script:
            target = self._classifier.script_target(op)
            if target is None:
                return self._match_cli(name, op.args, policy)
            return _match_script(target, policy)
        return None

    def _match_cli(self, tool: str, args: Sequence[str], policy: PolicyDocument) -> Optional[str]:
        entries = policy.auto_approve.cli_operations.get(tool)
        if not entries:
            return None
        return _first_match(compile_rules(f"autoApprove.cliOperations.{tool}", entries, MatchKind.prefix), args)

    def _manual(
        self,
        op: Operation,
        classification: ClassificationResult,
        policy: PolicyDocument,
        reason: str,
        *,
        matched_rule: Optional[str] = None,
        rate_limited: bool = False,
    ) -> Decision:
        return self._build(
            op,
            classification,
            policy,
            DecisionOutcome.manual,
            reason,
            matched_rule=matched_rule,
            rate_limited=rate_limited,
        )

    def _build(
        self,
        op: Operation,
        classification: ClassificationResult,
        policy: PolicyDocument,
        outcome: DecisionOutcome,
        reason: str,
        *,
        matched_rule: Optional[str] = None,
        rate_limited: bool = False,
    ) -> Decision:
        return Decision(
            operation_id=op.id,
            outcome=outcome,
            operation_type=classification.operation_type,
            matched_rule=matched_rule,
            rate_limited=rate_limited,
            reason=reason,
            policy_version=policy.version,
            risk_flags=tuple(sorted(classification.risk_flags, key=lambda f: f.value)),
        )


def _first_match(rules: List[Rule], subject: Sequence[str]) -> Optional[str]:
    for rule in rules:
        if rule.matches(subject):
            return rule.label
    return None


def _match_script(target: str, policy: PolicyDocument) -> Optional[str]:
    script_rules = policy.auto_approve.script_execution
    extension = posixpath.splitext(target)[1]
    if extension not in script_rules.extensions:
        return None

    path = target[2:] if target.startswith("./") else target
    if not script_rules.allowed_paths:
        return f"autoApprove.scriptExecution.extensions:{extension}"
    for prefix in script_rules.allowed_paths:
        if path.startswith(prefix):
            return f"autoApprove.scriptExecution.allowedPaths:{prefix}"
    return None
