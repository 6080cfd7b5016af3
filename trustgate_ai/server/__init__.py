"""
TrustGate-AI Server Package.

This package exposes the trust decision engine over HTTP.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Configuration and constants.
    exception_handlers: Mapping of domain errors to HTTP responses.
    schemas: Pydantic schemas for API request/response validation.
    services: Wiring of the trust service singleton.
"""
