"""
Audit logging for netobjects requests.
"""

from .logger import (
    AuditEvent,
    AuditLogger,
    MemoryAuditLogger,
    FileAuditLogger,
    create_audit_logger
)

__all__ = [
    "AuditEvent",
    "AuditLogger",
    "MemoryAuditLogger",
    "FileAuditLogger",
    "create_audit_logger",
]
