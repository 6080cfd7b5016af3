"""Policy document models.

A ``PolicyDocument`` is the versioned, declarative rule set the decision
engine evaluates against. Documents are immutable: a policy change always
produces a new document that replaces the old one in ``PolicyRuleStore``.

On disk and over HTTP the document uses camelCase keys::

    {
      "version": "1.0",
      "lastUpdated": "2025-01-01T00:00:00Z",
      "autoApprove": {"gitOperations": ["status", "commit"], ...},
      "manualApprove": {"deleteOperations": ["branch -D"], ...},
      "security": {"maxAutoApprovalPerHour": 1000, ...}
    }

Any pattern may be written either as a plain string, which uses the default
match kind of its list, or as a tagged object
``{"match": "exact" | "prefix" | "contains", "pattern": "..."}``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterator, List, Tuple, Union

from pydantic import Field, field_validator

from ..schemas.base import PolicySchema
from ..schemas.domain import ensure_utc
from .matcher import MatchKind, Rule, build_matcher


class PatternSpec(PolicySchema):
    match: MatchKind
    pattern: str

    @field_validator("pattern")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("pattern must not be blank")
        return value


PatternEntry = Union[str, PatternSpec]


def pattern_text(entry: PatternEntry) -> str:
    """Return the literal pattern string of an entry."""
    if isinstance(entry, PatternSpec):
        return entry.pattern
    return entry


def _reject_blank(entries: Tuple[PatternEntry, ...]) -> Tuple[PatternEntry, ...]:
    for entry in entries:
        if not pattern_text(entry).strip():
            raise ValueError("pattern must not be blank")
    return entries


class ScriptExecutionRules(PolicySchema):
    extensions: Tuple[str, ...] = ()
    allowed_paths: Tuple[str, ...] = ()


class AutoApproveRules(PolicySchema):
    """Allow lists, one per operation type."""

    git_operations: Tuple[PatternEntry, ...] = ()
    file_operations: Tuple[PatternEntry, ...] = ()
    cli_operations: Dict[str, Tuple[PatternEntry, ...]] = Field(default_factory=dict)
    script_execution: ScriptExecutionRules = Field(default_factory=ScriptExecutionRules)

    @field_validator("git_operations", "file_operations")
    @classmethod
    def _validate_patterns(cls, value: Tuple[PatternEntry, ...]) -> Tuple[PatternEntry, ...]:
        return _reject_blank(value)

    @field_validator("cli_operations")
    @classmethod
    def _validate_cli_patterns(
        cls, value: Dict[str, Tuple[PatternEntry, ...]]
    ) -> Dict[str, Tuple[PatternEntry, ...]]:
        for entries in value.values():
            _reject_blank(entries)
        return value


class ManualApproveRules(PolicySchema):
    """Deny lists. A match always forces manual approval."""

    delete_operations: Tuple[PatternEntry, ...] = ()
    force_operations: Tuple[PatternEntry, ...] = ()
    production_impact: Tuple[PatternEntry, ...] = ()

    @field_validator("delete_operations", "force_operations", "production_impact")
    @classmethod
    def _validate_patterns(cls, value: Tuple[PatternEntry, ...]) -> Tuple[PatternEntry, ...]:
        return _reject_blank(value)


class SecuritySettings(PolicySchema):
    max_auto_approval_per_hour: int = Field(default=1000, ge=0)
    suspicious_pattern_detection: bool = True
    log_all_operations: bool = True


class PolicyDocument(PolicySchema):
    version: str = "1.0"
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    auto_approve: AutoApproveRules = Field(default_factory=AutoApproveRules)
    manual_approve: ManualApproveRules = Field(default_factory=ManualApproveRules)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("last_updated")
    @classmethod
    def _normalize_last_updated(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_json_dict(self) -> dict:
        """Dump in the camelCase file format."""
        return self.model_dump(mode="json", by_alias=True)

    def allow_entries(self) -> Iterator[Tuple[str, PatternEntry]]:
        """Yield ``(field, entry)`` for every allow-list entry."""
        for entry in self.auto_approve.git_operations:
            yield "autoApprove.gitOperations", entry
        for entry in self.auto_approve.file_operations:
            yield "autoApprove.fileOperations", entry
        for tool, entries in self.auto_approve.cli_operations.items():
            for entry in entries:
                yield f"autoApprove.cliOperations.{tool}", entry

    def deny_entries(self) -> Iterator[Tuple[str, PatternEntry]]:
        """Yield ``(field, entry)`` for every deny-list entry."""
        for entry in self.manual_approve.delete_operations:
            yield "manualApprove.deleteOperations", entry
        for entry in self.manual_approve.force_operations:
            yield "manualApprove.forceOperations", entry
        for entry in self.manual_approve.production_impact:
            yield "manualApprove.productionImpact", entry


def compile_rules(field: str, entries: Tuple[PatternEntry, ...], default: MatchKind) -> List[Rule]:
    """Compile list entries into ``Rule`` objects.

    Plain strings use ``default``; tagged entries use their own match kind.
    """
    rules: List[Rule] = []
    for entry in entries:
        if isinstance(entry, PatternSpec):
            rules.append(Rule(field=field, pattern=entry.pattern, matcher=build_matcher(entry.match, entry.pattern)))
        else:
            rules.append(Rule(field=field, pattern=entry, matcher=build_matcher(default, entry)))
    return rules


def deny_rules(policy: PolicyDocument) -> List[Rule]:
    rules: List[Rule] = []
    for field, entry in policy.deny_entries():
        rules.extend(compile_rules(field, (entry,), MatchKind.contains))
    return rules
