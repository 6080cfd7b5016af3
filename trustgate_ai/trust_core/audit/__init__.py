from .interfaces import AuditStore
from .logger import AuditLogger, AuditQuery
from .stores import InMemoryAuditStore, JsonlAuditStore

__all__ = ["AuditStore", "AuditLogger", "AuditQuery", "InMemoryAuditStore", "JsonlAuditStore"]
