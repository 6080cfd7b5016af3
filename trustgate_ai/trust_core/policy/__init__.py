"""Policy documents, rule matching and the active policy store."""

from .defaults import default_policy
from .loader import PolicyFileSource
from .matcher import ArgumentContains, ExactMatch, MatchKind, PrefixMatch, Rule
from .models import (
    AutoApproveRules,
    ManualApproveRules,
    PatternSpec,
    PolicyDocument,
    ScriptExecutionRules,
    SecuritySettings,
    pattern_text,
)
from .store import PolicyRuleStore, find_conflict, validate_policy

__all__ = [
    "default_policy",
    "PolicyFileSource",
    "ArgumentContains",
    "ExactMatch",
    "MatchKind",
    "PrefixMatch",
    "Rule",
    "AutoApproveRules",
    "ManualApproveRules",
    "PatternSpec",
    "PolicyDocument",
    "ScriptExecutionRules",
    "SecuritySettings",
    "pattern_text",
    "PolicyRuleStore",
    "find_conflict",
    "validate_policy",
]
