"""TrustGate-AI.

This package contains a trust-approval policy engine for an automated coding
agent. Every shell command, file mutation, CLI invocation or script execution
the agent wants to perform is submitted as an ``Operation`` and receives a
``Decision``: ``auto`` (proceed without a human) or ``manual`` (pause for
sign-off).

Core subpackages
----------------

- ``trustgate_ai.trust_core``:

  - Operation classification (type and risk flags).
  - Versioned policy documents with an atomically replaced active copy.
  - The decision engine and the hourly auto-approval limiter.
  - Ordered, fail-closed audit logging.
  - Decision metrics and policy change reports.

- ``trustgate_ai.server``:

  - A FastAPI application exposing decisions, policies, metrics and the
    audit trail over HTTP.

Typical workflow
----------------

Most integrations should use ``trustgate_ai.trust_core.service.TrustService``:

1. Build an ``Operation`` for the command the agent wants to run.
2. Call ``TrustService.evaluate``.
3. Proceed on ``auto``; ask a human on ``manual``.
4. On ``AuditError`` act on the error's ``fallback_decision`` (always manual).
"""
