"""Policy change reports.

``PolicyChangeReporter.diff`` compares two policy documents field by field and
produces a ``PolicyChangeReport``: the list of changes in a stable order plus
a heuristic ``ImpactAnalysis``. The impact figures are projections derived
from the shape of the change, never measurements, and are always flagged with
``is_estimate=True``. Measured figures come from ``MetricsCollector``.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple
from uuid import uuid4

from pydantic import Field

from ..policy.models import PatternEntry, PolicyDocument, pattern_text
from ..schemas.base import BaseSchema
from ..schemas.domain import RiskLevel

logger = logging.getLogger(__name__)

ESTIMATE_BASIS = "heuristic projection from policy diff"


class ChangeType(str, Enum):
    added = "added"
    removed = "removed"
    modified = "modified"


class WorkflowDisruption(str, Enum):
    none = "none"
    minimal = "minimal"
    moderate = "moderate"


class PolicyChange(BaseSchema):
    section: str
    field: str
    change_type: ChangeType
    previous_value: Any = None
    new_value: Any = None
    description: str


class ImpactAnalysis(BaseSchema):
    is_estimate: bool = True
    basis: str = ESTIMATE_BASIS
    affected_operations: List[str] = Field(default_factory=list)
    security_risk: RiskLevel = RiskLevel.low
    security_description: str = ""
    mitigations: List[str] = Field(default_factory=list)
    expected_auto_approval_rate_change: float = 0.0
    expected_response_time_change_ms: float = 0.0
    trust_dialog_frequency_change: float = 0.0
    workflow_disruption_level: WorkflowDisruption = WorkflowDisruption.none


class PolicyChangeReport(BaseSchema):
    id: str
    timestamp: datetime
    previous_policy: PolicyDocument
    new_policy: PolicyDocument
    changes: List[PolicyChange] = Field(default_factory=list)
    impact_analysis: ImpactAnalysis
    generated_by: str = "system"


def _texts(entries: Sequence[PatternEntry]) -> List[str]:
    return [pattern_text(e) for e in entries]


def set_difference(previous: Sequence[str], current: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Return ``(added, removed)`` keeping the order of the source lists."""
    before, after = set(previous), set(current)
    added = [x for x in dict.fromkeys(current) if x not in before]
    removed = [x for x in dict.fromkeys(previous) if x not in after]
    return added, removed


def count_auto_approval_entries(policy: PolicyDocument) -> int:
    rules = policy.auto_approve
    count = len(rules.git_operations) + len(rules.file_operations)
    for entries in rules.cli_operations.values():
        count += len(entries)
    return count


class PolicyChangeReporter:
    """Diff policy documents and render the result as markdown."""

    def diff(
        self,
        previous: PolicyDocument,
        next_policy: PolicyDocument,
        generated_by: str = "system",
    ) -> PolicyChangeReport:
        changes = self._analyze_changes(previous, next_policy)
        return PolicyChangeReport(
            id=f"trust-policy-{int(time.time() * 1000)}-{uuid4().hex[:9]}",
            timestamp=datetime.now(timezone.utc),
            previous_policy=previous,
            new_policy=next_policy,
            changes=changes,
            impact_analysis=self._analyze_impact(changes, previous, next_policy),
            generated_by=generated_by,
        )

    # -- change detection ------------------------------------------------------------

    def _analyze_changes(self, previous: PolicyDocument, current: PolicyDocument) -> List[PolicyChange]:
        prev_auto, cur_auto = previous.auto_approve, current.auto_approve
        prev_manual, cur_manual = previous.manual_approve, current.manual_approve

        changes: List[PolicyChange] = []
        changes += self._list_changes(
            "autoApprove", "gitOperations", _texts(prev_auto.git_operations), _texts(cur_auto.git_operations),
            "auto approval for git operations",
        )
        changes += self._list_changes(
            "autoApprove", "fileOperations", _texts(prev_auto.file_operations), _texts(cur_auto.file_operations),
            "auto approval for file operations",
        )
        changes += self._cli_changes(prev_auto.cli_operations, cur_auto.cli_operations)
        changes += self._list_changes(
            "autoApprove", "scriptExecution.extensions",
            list(prev_auto.script_execution.extensions), list(cur_auto.script_execution.extensions),
            "auto-approved script extensions",
        )
        changes += self._list_changes(
            "autoApprove", "scriptExecution.allowedPaths",
            list(prev_auto.script_execution.allowed_paths), list(cur_auto.script_execution.allowed_paths),
            "auto-approved script paths",
        )
        changes += self._list_changes(
            "manualApprove", "deleteOperations",
            _texts(prev_manual.delete_operations), _texts(cur_manual.delete_operations),
            "manual approval for delete operations",
        )
        changes += self._list_changes(
            "manualApprove", "forceOperations",
            _texts(prev_manual.force_operations), _texts(cur_manual.force_operations),
            "manual approval for force operations",
        )
        changes += self._list_changes(
            "manualApprove", "productionImpact",
            _texts(prev_manual.production_impact), _texts(cur_manual.production_impact),
            "manual approval for production-impacting operations",
        )
        changes += self._security_changes(previous, current)
        return changes

    def _list_changes(
        self, section: str, field: str, previous: List[str], current: List[str], subject: str
    ) -> List[PolicyChange]:
        added, removed = set_difference(previous, current)
        changes: List[PolicyChange] = []
        if added:
            changes.append(
                PolicyChange(
                    section=section,
                    field=field,
                    change_type=ChangeType.added,
                    new_value=added,
                    description=f"Added {subject}: {', '.join(added)}",
                )
            )
        if removed:
            changes.append(
                PolicyChange(
                    section=section,
                    field=field,
                    change_type=ChangeType.removed,
                    previous_value=removed,
                    description=f"Removed {subject}: {', '.join(removed)}",
                )
            )
        return changes

    def _cli_changes(
        self,
        previous: Dict[str, Tuple[PatternEntry, ...]],
        current: Dict[str, Tuple[PatternEntry, ...]],
    ) -> List[PolicyChange]:
        changes: List[PolicyChange] = []
        for tool in sorted(set(previous) | set(current)):
            added, removed = set_difference(_texts(previous.get(tool, ())), _texts(current.get(tool, ())))
            if added:
                changes.append(
                    PolicyChange(
                        section="autoApprove",
                        field="cliOperations",
                        change_type=ChangeType.added,
                        new_value={tool: added},
                        description=f"Added auto approval for {tool} CLI operations: {', '.join(added)}",
                    )
                )
            if removed:
                changes.append(
                    PolicyChange(
                        section="autoApprove",
                        field="cliOperations",
                        change_type=ChangeType.removed,
                        previous_value={tool: removed},
                        description=f"Removed auto approval for {tool} CLI operations: {', '.join(removed)}",
                    )
                )
        return changes

    def _security_changes(self, previous: PolicyDocument, current: PolicyDocument) -> List[PolicyChange]:
        changes: List[PolicyChange] = []
        prev, cur = previous.security, current.security
        if prev.max_auto_approval_per_hour != cur.max_auto_approval_per_hour:
            changes.append(
                PolicyChange(
                    section="security",
                    field="maxAutoApprovalPerHour",
                    change_type=ChangeType.modified,
                    previous_value=prev.max_auto_approval_per_hour,
                    new_value=cur.max_auto_approval_per_hour,
                    description=(
                        f"Changed max auto approvals per hour from {prev.max_auto_approval_per_hour} "
                        f"to {cur.max_auto_approval_per_hour}"
                    ),
                )
            )
        for field, label, before, after in (
            (
                "suspiciousPatternDetection",
                "suspicious pattern detection",
                prev.suspicious_pattern_detection,
                cur.suspicious_pattern_detection,
            ),
            ("logAllOperations", "logging of all operations", prev.log_all_operations, cur.log_all_operations),
        ):
            if before != after:
                changes.append(
                    PolicyChange(
                        section="security",
                        field=field,
                        change_type=ChangeType.modified,
                        previous_value=before,
                        new_value=after,
                        description=f"{'Enabled' if after else 'Disabled'} {label}",
                    )
                )
        return changes

    # -- impact estimate ---------------------------------------------------------------

    def _analyze_impact(
        self, changes: List[PolicyChange], previous: PolicyDocument, current: PolicyDocument
    ) -> ImpactAnalysis:
        level = RiskLevel.low
        descriptions: List[str] = []
        mitigations: List[str] = []
        dialog_change = 0.0
        disruption = WorkflowDisruption.none

        for change in changes:
            if change.section == "manualApprove" and change.change_type == ChangeType.removed:
                level = RiskLevel.high
                descriptions.append("Removing manual approval lets dangerous operations run automatically")
                mitigations += ["Review the audit log regularly", "Keep suspicious pattern detection enabled"]
            if change.section == "autoApprove" and change.change_type == ChangeType.added:
                if level == RiskLevel.low:
                    level = RiskLevel.medium
                descriptions.append("New auto approvals let additional operations run without review")
                mitigations += ["Roll out gradually", "Monitor closely during the initial period"]
            if change.field == "suspiciousPatternDetection" and change.new_value is False:
                level = RiskLevel.high
                descriptions.append("Disabling suspicious pattern detection increases security risk")
                mitigations += ["Monitor manually on a regular schedule", "Strengthen log analysis"]

            if change.section == "autoApprove" and change.change_type == ChangeType.added:
                dialog_change -= 5
            if change.section == "manualApprove" and change.change_type == ChangeType.added:
                dialog_change += 3
                if disruption == WorkflowDisruption.none:
                    disruption = WorkflowDisruption.minimal
            if change.section == "autoApprove" and change.change_type == ChangeType.removed:
                dialog_change += 10
                disruption = WorkflowDisruption.moderate

        previous_count = count_auto_approval_entries(previous)
        new_count = count_auto_approval_entries(current)
        rate_change = (new_count - previous_count) / max(previous_count, 1) * 100
        if rate_change > 0:
            response_change = -10.0
        elif rate_change < 0:
            response_change = 20.0
        else:
            response_change = 0.0

        return ImpactAnalysis(
            affected_operations=self._affected_operations(changes),
            security_risk=level,
            security_description="; ".join(descriptions) or "Minimal security impact",
            mitigations=list(dict.fromkeys(mitigations)),
            expected_auto_approval_rate_change=rate_change,
            expected_response_time_change_ms=response_change,
            trust_dialog_frequency_change=dialog_change,
            workflow_disruption_level=disruption,
        )

    @staticmethod
    def _affected_operations(changes: List[PolicyChange]) -> List[str]:
        operations: Dict[str, None] = {}
        for change in changes:
            if change.section not in ("autoApprove", "manualApprove"):
                continue
            for value in (change.new_value, change.previous_value):
                if isinstance(value, list):
                    operations.update(dict.fromkeys(value))
                elif isinstance(value, dict):
                    for tool, ops in value.items():
                        operations.update(dict.fromkeys(f"{tool} {op}" for op in ops))
        return list(operations)

    # -- output ------------------------------------------------------------------------

    def render_markdown(self, report: PolicyChangeReport) -> str:
        impact = report.impact_analysis
        lines = [
            "# Trust Policy Update Report",
            "",
            "## Summary",
            "",
            f"- **Report ID**: {report.id}",
            f"- **Generated at**: {report.timestamp.isoformat()}",
            f"- **Generated by**: {report.generated_by}",
            f"- **Policy version**: {report.previous_policy.version} -> {report.new_policy.version}",
            "",
            "## Changes",
            "",
        ]
        if not report.changes:
            lines.append("No changes.")
        else:
            lines.append(f"{len(report.changes)} change(s) detected.")
        for change in report.changes:
            lines += ["", f"### {change.section}.{change.field}", ""]
            lines.append(f"- **Type**: {change.change_type.value}")
            lines.append(f"- **Description**: {change.description}")
            if change.previous_value is not None:
                lines.append(f"- **Before**: `{json.dumps(change.previous_value)}`")
            if change.new_value is not None:
                lines.append(f"- **After**: `{json.dumps(change.new_value)}`")

        lines += ["", "## Impact Analysis (estimate)", "", f"_Basis: {impact.basis}. Not a measurement._", ""]
        lines.append("### Affected operations")
        lines.append("")
        if impact.affected_operations:
            lines += [f"- {op}" for op in impact.affected_operations]
        else:
            lines.append("None.")
        lines += [
            "",
            "### Security",
            "",
            f"- **Risk level**: {impact.security_risk.value}",
            f"- **Description**: {impact.security_description}",
        ]
        if impact.mitigations:
            lines += ["", "**Suggested mitigations**:", ""]
            lines += [f"- {m}" for m in impact.mitigations]
        lines += [
            "",
            "### Performance",
            "",
            f"- **Auto approval rate change**: {impact.expected_auto_approval_rate_change:+.1f}%",
            f"- **Response time change**: {impact.expected_response_time_change_ms:+.0f}ms",
            "",
            "### User experience",
            "",
            f"- **Trust dialog frequency change**: {impact.trust_dialog_frequency_change:+.0f}%",
            f"- **Workflow disruption**: {impact.workflow_disruption_level.value}",
            "",
            "## Policy before",
            "",
            "```json",
            json.dumps(report.previous_policy.to_json_dict(), indent=2),
            "```",
            "",
            "## Policy after",
            "",
            "```json",
            json.dumps(report.new_policy.to_json_dict(), indent=2),
            "```",
            "",
        ]
        return "\n".join(lines)

    def write(self, report: PolicyChangeReport, directory: str | Path) -> Path:
        """Write ``trust-policy-update-YYYY-MM-DD.md`` into ``directory``."""
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"trust-policy-update-{report.timestamp.date().isoformat()}.md"
        path.write_text(self.render_markdown(report), encoding="utf-8")
        logger.info(f"Wrote policy update report: {path}")
        return path
