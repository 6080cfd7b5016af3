"""Built-in default policy.

Used when no policy file exists yet or the configured file cannot be loaded.
"""

from __future__ import annotations

from datetime import datetime, timezone

from .models import (
    AutoApproveRules,
    ManualApproveRules,
    PolicyDocument,
    ScriptExecutionRules,
    SecuritySettings,
)

DEFAULT_POLICY_VERSION = "1.0"


def default_policy() -> PolicyDocument:
    """Return a fresh copy of the built-in default policy document."""
    return PolicyDocument(
        version=DEFAULT_POLICY_VERSION,
        last_updated=datetime.now(timezone.utc),
        auto_approve=AutoApproveRules(
            git_operations=(
                "status",
                "commit",
                "push",
                "pull",
                "merge",
                "log",
                "diff",
                "show",
                "branch",
                "checkout",
                "switch",
                "fetch",
                "add",
                "restore",
                "stash",
                "tag",
            ),
            file_operations=("touch", "mkdir", "cp", "mv"),
            cli_operations={
                "vercel": (
                    "env ls",
                    "domains ls",
                    "deployments ls",
                    "status",
                    "whoami",
                    "teams ls",
                    "projects ls",
                    "logs",
                ),
                "npm": ("run test", "run lint", "run build", "test"),
            },
            script_execution=ScriptExecutionRules(
                extensions=(".mjs", ".js"),
                allowed_paths=("scripts/", "tools/", "bin/"),
            ),
        ),
        manual_approve=ManualApproveRules(
            delete_operations=(
                "branch -D",
                "branch --delete",
                "push --delete",
                "tag -d",
                "rm",
                "rmdir",
                "env rm",
                "domain rm",
            ),
            force_operations=(
                "reset --hard",
                "push --force",
                "push -f",
                "clean -fd",
                "-rf",
                "--force",
            ),
            production_impact=(
                "deploy --prod",
                "--prod",
                "env add",
                "env set",
                "domain add",
            ),
        ),
        security=SecuritySettings(
            max_auto_approval_per_hour=1000,
            suspicious_pattern_detection=True,
            log_all_operations=True,
        ),
    )
