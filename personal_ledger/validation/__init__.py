"""Validation package."""

from personal_ledger.validation.validator import (
    MIN_LINES,
    LedgerValidator,
    parse_input,
    schema_issues,
)

__all__ = ["MIN_LINES", "LedgerValidator", "parse_input", "schema_issues"]
