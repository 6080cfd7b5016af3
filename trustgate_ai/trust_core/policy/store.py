"""In-memory holder of the active policy document.

Reads are lock-free: ``current()`` returns whatever document the reference
points at, and documents are immutable. ``replace()`` validates the candidate
first and then swaps the reference under a lock, so a decision in flight keeps
evaluating against the snapshot it captured.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from ..errors import PolicyConflict
from .defaults import default_policy
from .models import PolicyDocument, pattern_text

logger = logging.getLogger(__name__)


def find_conflict(policy: PolicyDocument) -> Optional[PolicyConflict]:
    """Return a ``PolicyConflict`` if any pattern is both allowed and denied.

    Pattern strings are compared literally, ignoring the match kind.
    """
    denied: Dict[str, List[str]] = {}
    for field, entry in policy.deny_entries():
        denied.setdefault(pattern_text(entry), []).append(field)

    for field, entry in policy.allow_entries():
        text = pattern_text(entry)
        if text in denied:
            return PolicyConflict(fields=[field, denied[text][0]], pattern=text)
    return None


def validate_policy(policy: PolicyDocument) -> None:
    """Raise ``PolicyConflict`` when ``policy`` contradicts itself."""
    conflict = find_conflict(policy)
    if conflict is not None:
        raise conflict


class PolicyRuleStore:
    """Copy-on-write store for the active ``PolicyDocument``."""

    def __init__(self, initial: Optional[PolicyDocument] = None) -> None:
        policy = initial if initial is not None else default_policy()
        validate_policy(policy)
        self._current = policy
        self._revision = 0
        self._lock = threading.Lock()

    def current(self) -> PolicyDocument:
        return self._current

    @property
    def revision(self) -> int:
        """Number of successful replacements since construction."""
        return self._revision

    def replace(self, next_policy: PolicyDocument) -> PolicyDocument:
        """
        Atomically install ``next_policy`` as the active document.

        Args:
            next_policy: The candidate document.

        Returns:
            The document that was active before the swap.

        Raises:
            PolicyConflict: If the candidate lists a pattern in both an allow
                list and a deny list. The active document is unchanged.
        """
        validate_policy(next_policy)
        with self._lock:
            previous = self._current
            self._current = next_policy
            self._revision += 1
        logger.info(f"Policy replaced: version {previous.version} -> {next_policy.version}")
        return previous
