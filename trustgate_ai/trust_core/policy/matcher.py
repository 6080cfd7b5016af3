"""Pattern matching for policy rules.

Rules match over token tuples rather than raw strings, so ``git branch -D``
matches a deny entry ``branch -D`` but ``git branch --Dx`` does not. Matching
is case-sensitive.

Three variants exist:

- ``ExactMatch``: the subject tokens equal the pattern tokens.
- ``PrefixMatch``: the subject starts with the pattern tokens.
- ``ArgumentContains``: the pattern tokens appear as a contiguous run
  anywhere in the subject.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence, Tuple

from ..classifier import contains_sequence


class MatchKind(str, Enum):
    exact = "exact"
    prefix = "prefix"
    contains = "contains"


def tokenize(pattern: str) -> Tuple[str, ...]:
    return tuple(pattern.split())


class Matcher(Protocol):
    tokens: Tuple[str, ...]

    def matches(self, subject: Sequence[str]) -> bool: ...


@dataclass(frozen=True)
class ExactMatch:
    tokens: Tuple[str, ...]

    def matches(self, subject: Sequence[str]) -> bool:
        return tuple(subject) == self.tokens


@dataclass(frozen=True)
class PrefixMatch:
    tokens: Tuple[str, ...]

    def matches(self, subject: Sequence[str]) -> bool:
        size = len(self.tokens)
        return size > 0 and tuple(subject[:size]) == self.tokens


@dataclass(frozen=True)
class ArgumentContains:
    tokens: Tuple[str, ...]

    def matches(self, subject: Sequence[str]) -> bool:
        return contains_sequence(subject, self.tokens)


_MATCHERS = {
    MatchKind.exact: ExactMatch,
    MatchKind.prefix: PrefixMatch,
    MatchKind.contains: ArgumentContains,
}


def build_matcher(kind: MatchKind, pattern: str) -> Matcher:
    return _MATCHERS[MatchKind(kind)](tokenize(pattern))


@dataclass(frozen=True)
class Rule:
    """A compiled policy entry together with where it came from.

    ``label`` is what ends up in ``Decision.matched_rule``, for example
    ``manualApprove.deleteOperations:branch -D``.
    """

    field: str
    pattern: str
    matcher: Matcher

    @property
    def label(self) -> str:
        return f"{self.field}:{self.pattern}"

    def matches(self, subject: Sequence[str]) -> bool:
        return self.matcher.matches(subject)
