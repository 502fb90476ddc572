"""
Audit trail for invitation acceptance and access redirects.
"""

from .logger import AuditLogger
from .models import AuditAction, AuditLogEntry, ResourceType

__all__ = [
    "AuditLogger",
    "AuditLogEntry",
    "AuditAction",
    "ResourceType",
]
