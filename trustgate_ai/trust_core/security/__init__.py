from .models import SecurityEvent, SecurityEventStats, SecurityEventType, SecuritySeverity, SecurityState
from .monitor import SecurityMonitor
from .stores import InMemorySecurityEventStore, JsonlSecurityEventStore, SecurityEventStore

__all__ = [
    "SecurityEvent",
    "SecurityEventStats",
    "SecurityEventType",
    "SecuritySeverity",
    "SecurityState",
    "SecurityMonitor",
    "InMemorySecurityEventStore",
    "JsonlSecurityEventStore",
    "SecurityEventStore",
]
