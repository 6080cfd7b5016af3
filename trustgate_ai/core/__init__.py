"""
Core utilities for TrustGate-AI.

This package provides shared functionality such as logging configuration and
optional Logfire monitoring for the HTTP server.
"""

from trustgate_ai.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
