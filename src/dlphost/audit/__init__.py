"""Privacy-safe audit trail of every decision."""

from dlphost.audit.logger import (
    AUDIT_FIELDS,
    AuditLogger,
    audit_file_for,
    build_audit_entry,
    read_audit_entries,
)

__all__ = [
    "AUDIT_FIELDS",
    "AuditLogger",
    "audit_file_for",
    "build_audit_entry",
    "read_audit_entries",
]
