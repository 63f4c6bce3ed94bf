"""
Data Models Package

This package contains all Pydantic models used in the Personal Ledger system.
All data flowing through the system must conform to these schemas.
"""

from personal_ledger.models.ledger import (
    Account,
    AccountCreate,
    AccountUpdate,
    BackupMetadata,
    LedgerMeta,
    LedgerState,
    PostedSnapshot,
    Transaction,
    TransactionDraft,
    TransactionLine,
)
from personal_ledger.models.report import (
    LedgerSummary,
    OperationResult,
    Report,
    ReportFilter,
    ReportRow,
)
from personal_ledger.models.validation import ValidationIssue, ValidationResult
from personal_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountCreate",
    "AccountUpdate",
    "BackupMetadata",
    "LedgerMeta",
    "LedgerState",
    "PostedSnapshot",
    "Transaction",
    "TransactionDraft",
    "TransactionLine",
    # Report models
    "LedgerSummary",
    "OperationResult",
    "Report",
    "ReportFilter",
    "ReportRow",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
