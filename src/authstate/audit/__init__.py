"""
Audit: journal des événements de sécurité.
"""

from .interfaces import (
    ISecurityEventRecorder,
    SecurityEvent,
    SecurityEventSeverity,
    SecurityEventType,
)
from .security_event_recorder import (
    ANONYMOUS_USER,
    SECURITY_LOG_PREFIX,
    SecurityEventRecorder,
    classify_severity,
    security_log_key,
)

__all__ = [
    # Interfaces
    "ISecurityEventRecorder",
    # Data classes
    "SecurityEvent",
    "SecurityEventSeverity",
    "SecurityEventType",
    # Implementations
    "SecurityEventRecorder",
    "classify_severity",
    "security_log_key",
    "SECURITY_LOG_PREFIX",
    "ANONYMOUS_USER",
]
