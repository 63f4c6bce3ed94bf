"""
Validation Models

Issues found while checking a ledger document before it replaces the
live ledger. Save-time checks on a single voucher raise directly; these
models are for whole-document checks, where every issue is reported at
once.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Path of the offending value (e.g. 'transactions[3].lines')"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g. 'unbalanced', 'duplicate_id', 'dangling_reference')"
    )
    message: str
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage document validation.

    Stage 1: Schema validation (the document parses into a LedgerState)
    Stage 2: Semantic validation (ledger invariants hold)
    """

    validated_at: datetime = Field(default_factory=datetime.utcnow)
    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
