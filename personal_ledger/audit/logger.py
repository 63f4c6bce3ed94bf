"""
Audit Logger

DESIGN DECISION: Every accepted change to the ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability when a snapshot write fails
3. A history of imports, restores and wipes

The audit logger:
- Is synchronous, like the rest of the engine
- Never raises (a logging failure must not undo a ledger change)
"""

import logging
from typing import Any, Callable, Optional

import structlog

from personal_ledger.config import LoggingSettings, get_settings
from personal_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure structlog on top of stdlib logging.

    Called once on import with the environment settings; call again to
    switch level or renderer.
    """
    settings = settings or get_settings().logging
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
    )

    logging.basicConfig(format="%(message)s", level=settings.level)
    logging.getLogger("personal_ledger").setLevel(settings.level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Writes one structured `audit_event` record per event, at the
    level matching the event severity. Failures to build or emit an
    event are reported on the fallback logger and swallowed.
    """

    def __init__(self):
        self._logger = structlog.get_logger("personal_ledger.audit")
        self._fallback = logging.getLogger("personal_ledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            self._fallback.error(
                "audit_log_failed: event_id=%s error=%s", event.event_id, e
            )
            return False
        return True

    def _record(self, build: Callable[..., AuditEvent], *args: Any) -> bool:
        """Build an event with an AuditEventBuilder factory and log it."""
        try:
            event = build(*args)
        except Exception as e:
            self._fallback.error("audit_build_failed: %s error=%s", build.__name__, e)
            return False
        return self.log(event)

    def log_account_created(self, account_id: str, name: str, serial: int) -> None:
        self._record(AuditEventBuilder.account_created, account_id, name, serial)

    def log_account_updated(self, account_id: str, changed: list[str]) -> None:
        self._record(AuditEventBuilder.account_updated, account_id, changed)

    def log_account_deleted(self, account_id: str) -> None:
        self._record(AuditEventBuilder.account_deleted, account_id)

    def log_transaction_saved(
        self,
        transaction_id: str,
        voucher_no: int,
        posted: bool,
        amount: str,
    ) -> None:
        """Log a voucher save (draft or posted)."""
        self._record(
            AuditEventBuilder.transaction_saved,
            transaction_id,
            voucher_no,
            posted,
            amount,
        )

    def log_transaction_deleted(self, transaction_id: str, voucher_no: int) -> None:
        self._record(AuditEventBuilder.transaction_deleted, transaction_id, voucher_no)

    def log_data_imported(self, accounts: int, transactions: int, warnings: int) -> None:
        self._record(AuditEventBuilder.data_imported, accounts, transactions, warnings)

    def log_data_cleared(self, backup_key: Optional[str]) -> None:
        self._record(AuditEventBuilder.data_cleared, backup_key)

    def log_backup_created(self, key: str, kind: str) -> None:
        self._record(AuditEventBuilder.backup_created, key, kind)

    def log_backup_restored(self, key: str, safety_backup_key: Optional[str]) -> None:
        self._record(AuditEventBuilder.backup_restored, key, safety_backup_key)

    def log_rejected(self, operation: str, error_message: str) -> None:
        """Log an operation the engine refused."""
        self._record(AuditEventBuilder.operation_rejected, operation, error_message)

    def log_persistence_failed(self, operation: str, error_message: str) -> None:
        """Log a snapshot write that failed after a mutation."""
        self._record(AuditEventBuilder.persistence_failed, operation, error_message)
