"""
Audit Models for Personal Ledger

Every accepted change to the ledger is logged for audit purposes.
This provides:
1. Traceability of every account and voucher change
2. Debugging information when a snapshot write fails
3. A record of imports, restores and data wipes

DESIGN DECISION: Audit events are write-once. Nothing edits an event
after it has been emitted.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


DESCRIPTION_LIMIT = 500


def clip_description(text: str) -> str:
    """Shorten free text to fit an event description."""
    if len(text) <= DESCRIPTION_LIMIT:
        return text
    return text[: DESCRIPTION_LIMIT - 3] + "..."


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Vouchers
    DRAFT_SAVED = "draft_saved"
    TRANSACTION_POSTED = "transaction_posted"
    TRANSACTION_DELETED = "transaction_deleted"

    # Whole-ledger operations
    DATA_IMPORTED = "data_imported"
    DATA_CLEARED = "data_cleared"
    BACKUP_CREATED = "backup_created"
    BACKUP_RESTORED = "backup_restored"

    # Failures
    OPERATION_REJECTED = "operation_rejected"
    PERSISTENCE_FAILED = "persistence_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'backup')"
    )
    entity_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=DESCRIPTION_LIMIT,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, name)
        event = AuditEventBuilder.transaction_saved(tx_id, voucher_no, True)
    """

    @staticmethod
    def account_created(account_id: str, name: str, serial: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            description=clip_description(f"Account created: {name}"),
            details={"name": name, "serial": serial},
        )

    @staticmethod
    def account_updated(account_id: str, changed: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {', '.join(changed) or 'no changes'}",
            details={"changed_fields": changed},
        )

    @staticmethod
    def account_deleted(account_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description="Account deleted",
        )

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        voucher_no: int,
        posted: bool,
        amount: str,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.TRANSACTION_POSTED
            if posted
            else AuditEventType.DRAFT_SAVED
        )
        label = "posted" if posted else "saved as draft"
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Voucher #{voucher_no} {label}",
            details={"voucher_no": voucher_no, "amount": amount},
        )

    @staticmethod
    def transaction_deleted(transaction_id: str, voucher_no: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Voucher #{voucher_no} deleted",
            details={"voucher_no": voucher_no},
        )

    @staticmethod
    def data_imported(accounts: int, transactions: int, warnings: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            entity_type="ledger",
            description=f"Imported {accounts} accounts and {transactions} transactions",
            details={
                "accounts_count": accounts,
                "transactions_count": transactions,
                "warning_count": warnings,
            },
        )

    @staticmethod
    def data_cleared(backup_key: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            description="All ledger data cleared",
            details={"backup_key": backup_key},
        )

    @staticmethod
    def backup_created(key: str, kind: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_CREATED,
            entity_type="backup",
            entity_id=key,
            description=f"{kind.capitalize()} backup created",
            details={"kind": kind},
        )

    @staticmethod
    def backup_restored(key: str, safety_backup_key: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            entity_id=key,
            description="Ledger restored from backup",
            details={"safety_backup_key": safety_backup_key},
        )

    @staticmethod
    def operation_rejected(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            description=f"Operation rejected: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def persistence_failed(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Snapshot not persisted after {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
