"""Operation classification.

``OperationClassifier`` derives the operation type and the independent risk
flags for a command line. It is pure and total: every operation, including one
with an empty command, yields a result and nothing here raises.

The derived type is authoritative. The type an ``Operation`` arrives with is
the caller's claim and is ignored for decision purposes.
"""

from __future__ import annotations

import posixpath
from typing import FrozenSet, Optional, Sequence, Tuple

from .schemas.domain import ClassificationResult, Operation, OperationType, RiskFlag

GIT_COMMANDS: FrozenSet[str] = frozenset({"git"})
FILE_COMMANDS: FrozenSet[str] = frozenset({"rm", "rmdir", "touch", "mkdir", "cp", "mv"})
CLI_TOOLS: FrozenSet[str] = frozenset({"vercel", "npm", "yarn", "pnpm"})
PACKAGE_RUNNERS: FrozenSet[str] = frozenset({"npm", "yarn", "pnpm"})
SCRIPT_RUNNER_SUBCOMMANDS: FrozenSet[str] = frozenset({"run", "exec", "dlx"})
INTERPRETERS: FrozenSet[str] = frozenset(
    {"node", "python", "python3", "bash", "sh", "zsh", "deno", "bun", "ruby", "perl", "tsx", "ts-node"}
)
SCRIPT_EXTENSIONS: Tuple[str, ...] = (".js", ".mjs", ".cjs", ".ts", ".py", ".sh", ".bash", ".zsh", ".rb", ".pl")

DELETION_TOKENS: FrozenSet[str] = frozenset({"-D", "--delete", "rm", "rmdir"})
FORCE_TOKENS: FrozenSet[str] = frozenset({"--force", "-f", "-rf", "-fr", "--hard", "--force-with-lease"})
PRODUCTION_TOKENS: FrozenSet[str] = frozenset({"--prod", "--production", "deploy"})
PRODUCTION_SEQUENCES: Tuple[Tuple[str, ...], ...] = (
    ("env", "rm"),
    ("env", "add"),
    ("env", "set"),
    ("domains", "rm"),
    ("domain", "rm"),
    ("domain", "add"),
)


def command_name(command: str) -> str:
    """Return the basename of ``command`` (``/usr/bin/git`` -> ``git``)."""
    return posixpath.basename(command.strip())


def is_script_path(token: str) -> bool:
    return token.endswith(SCRIPT_EXTENSIONS)


def contains_sequence(tokens: Sequence[str], needle: Sequence[str]) -> bool:
    """True when ``needle`` occurs as a contiguous run inside ``tokens``."""
    size = len(needle)
    if size == 0 or size > len(tokens):
        return False
    first = needle[0]
    for i in range(len(tokens) - size + 1):
        if tokens[i] == first and tuple(tokens[i : i + size]) == tuple(needle):
            return True
    return False


class OperationClassifier:
    """Stateless classifier; safe to share across threads."""

    def classify(self, op: Operation) -> ClassificationResult:
        """
        Classify an operation.

        Args:
            op: The operation to classify.

        Returns:
            The derived type and the set of risk flags. An empty or
            whitespace-only command classifies as ``unknown`` with no flags.
        """
        name = command_name(op.command)
        if not name:
            return ClassificationResult(operation_type=OperationType.unknown)

        op_type = self.detect_type(name, op.args)
        flags = self.detect_risk_flags((name, *op.args))
        return ClassificationResult(operation_type=op_type, risk_flags=flags)

    def detect_type(self, name: str, args: Sequence[str]) -> OperationType:
        if name in GIT_COMMANDS:
            return OperationType.git
        if name in FILE_COMMANDS:
            return OperationType.file
        if name in CLI_TOOLS:
            if name in PACKAGE_RUNNERS and any(a in SCRIPT_RUNNER_SUBCOMMANDS for a in args):
                return OperationType.script
            return OperationType.cli
        if name in INTERPRETERS:
            if args and is_script_path(args[0]):
                return OperationType.script
            return OperationType.unknown
        if is_script_path(name):
            return OperationType.script
        return OperationType.unknown

    def detect_risk_flags(self, tokens: Sequence[str]) -> FrozenSet[RiskFlag]:
        flags = set()
        token_set = set(tokens)
        if token_set & DELETION_TOKENS:
            flags.add(RiskFlag.deletion)
        if token_set & FORCE_TOKENS:
            flags.add(RiskFlag.force)
        if token_set & PRODUCTION_TOKENS or any(contains_sequence(tokens, seq) for seq in PRODUCTION_SEQUENCES):
            flags.add(RiskFlag.production_impact)
        return frozenset(flags)

    def script_target(self, op: Operation) -> Optional[str]:
        """Return the script path a script operation executes, if it names one.

        ``node scripts/x.mjs`` -> ``scripts/x.mjs``; ``./tools/x.sh`` ->
        ``./tools/x.sh``; package-runner scripts (``npm run build``) have no
        path and return ``None``.
        """
        name = command_name(op.command)
        if name in INTERPRETERS and op.args and is_script_path(op.args[0]):
            return op.args[0]
        if is_script_path(name):
            return op.command.strip()
        return None


_default_classifier = OperationClassifier()


def classify(op: Operation) -> ClassificationResult:
    """Module-level convenience wrapper around a shared ``OperationClassifier``."""
    return _default_classifier.classify(op)
