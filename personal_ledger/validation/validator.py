"""
Two-Stage Ledger Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - STRUCTURE:
- At least two lines per voucher
- Amounts are non-negative
- A line is either a debit or a credit, never both
- Line ids are unique within the voucher

STAGE 2 - ACCOUNTING:
- Total debits equal total credits (within the configured tolerance)
- Every line references an existing account

A single voucher is checked with `validate_lines`, which raises on the
first failure. A whole document (import) is checked with
`validate_state`, which collects every issue so the user sees them all.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and the operation is rejected.
"""

from collections import Counter
from decimal import Decimal
from typing import Any, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationError as SchemaError

from personal_ledger.config import get_settings
from personal_ledger.errors import ValidationError
from personal_ledger.models.ledger import LedgerState, TransactionLine
from personal_ledger.models.validation import ValidationIssue, ValidationResult


MIN_LINES = 2

ModelT = TypeVar("ModelT", bound=BaseModel)


def schema_issues(error: SchemaError) -> list[ValidationIssue]:
    """One error-level issue per pydantic error."""
    return [
        ValidationIssue(
            field=".".join(str(part) for part in err["loc"]) or "document",
            issue_type=err["type"],
            message=err["msg"],
            severity="error",
        )
        for err in error.errors()
    ]


def parse_input(model: type[ModelT], data: Any) -> ModelT:
    """
    Coerce caller input (a model instance or a plain dict) into `model`.

    Raises:
        ValidationError: If the input doesn't match the model, with one
                         issue per offending field
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except SchemaError as e:
        issues = schema_issues(e)
        first = issues[0]
        raise ValidationError(
            f"Invalid {model.__name__}: {first.field}: {first.message}",
            issues=issues,
        )


class LedgerValidator:
    """
    Validates vouchers before they are committed and documents before
    they are imported.
    """

    def __init__(self, tolerance: Optional[Decimal] = None):
        """
        Initialize validator.

        Args:
            tolerance: Maximum allowed |debit total - credit total|.
                       Defaults to the configured balance tolerance.
        """
        if tolerance is None:
            tolerance = get_settings().ledger.balance_tolerance
        self._tolerance = tolerance

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    @staticmethod
    def totals(lines: Sequence[TransactionLine]) -> tuple[Decimal, Decimal]:
        """Return (total debit, total credit) for a set of lines."""
        total_dr = sum((line.dr for line in lines), Decimal("0"))
        total_cr = sum((line.cr for line in lines), Decimal("0"))
        return total_dr, total_cr

    def is_balanced(self, lines: Sequence[TransactionLine]) -> bool:
        total_dr, total_cr = self.totals(lines)
        return abs(total_dr - total_cr) <= self._tolerance

    # -------------------------------------------------------------------------
    # Single voucher
    # -------------------------------------------------------------------------

    def validate_account_name(self, name: Optional[str]) -> None:
        if name is None or not name.strip():
            raise ValidationError("Account name is required")

    def validate_lines(
        self,
        lines: Sequence[TransactionLine],
        state: LedgerState,
    ) -> None:
        """
        Check a voucher's lines against the ledger.

        Raises ValidationError on the first problem; the whole voucher
        is rejected, never a subset of its lines.
        """
        if len(lines) < MIN_LINES:
            raise ValidationError("At least 2 lines required")

        for index, line in enumerate(lines, start=1):
            if line.dr < 0 or line.cr < 0:
                raise ValidationError(f"Line {index}: amounts cannot be negative")
            if line.dr > 0 and line.cr > 0:
                raise ValidationError(
                    f"Line {index}: a line is either a debit or a credit, not both"
                )

        total_dr, total_cr = self.totals(lines)
        if abs(total_dr - total_cr) > self._tolerance:
            raise ValidationError(
                f"Totals do not match: debit {total_dr}, credit {total_cr}",
                total_dr=total_dr,
                total_cr=total_cr,
            )

        line_ids = [line.id for line in lines if line.id]
        duplicates = [key for key, count in Counter(line_ids).items() if count > 1]
        if duplicates:
            raise ValidationError(f"Duplicate line ids: {', '.join(sorted(duplicates))}")

        known = {account.id for account in state.accounts}
        for index, line in enumerate(lines, start=1):
            if line.account_id not in known:
                raise ValidationError(
                    f"Line {index}: unknown account '{line.account_id}'"
                )

    # -------------------------------------------------------------------------
    # Whole document
    # -------------------------------------------------------------------------

    def parse_document(
        self,
        document: Any,
        strict: bool = True,
    ) -> tuple[LedgerState, ValidationResult]:
        """
        Parse an imported document into a LedgerState.

        Stage 1 always runs: a document that doesn't parse is rejected.
        Stage 2 runs when `strict` is set: error-level issues reject the
        document, warnings are returned alongside the parsed state.
        """
        if not isinstance(document, dict):
            raise ValidationError("Import document must be a JSON object")

        try:
            state = LedgerState.model_validate(document)
        except SchemaError as e:
            issues = schema_issues(e)
            raise ValidationError(
                f"Import document is malformed ({len(issues)} issues)",
                issues=issues,
            )

        if not strict:
            return state, ValidationResult(schema_valid=True, semantic_valid=True)

        result = self.validate_state(state)
        if result.has_errors:
            raise ValidationError(
                f"Import document violates ledger rules ({result.error_count} errors)",
                issues=result.issues,
            )
        return state, result

    def validate_state(self, state: LedgerState) -> ValidationResult:
        """
        Check every ledger invariant over a whole state.

        Returns all issues found; does not raise.
        """
        issues = []
        issues.extend(self._check_accounts(state))
        issues.extend(self._check_transactions(state))
        issues.extend(self._check_counters(state))

        semantic_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            schema_valid=True,
            semantic_valid=semantic_valid,
            issues=issues,
        )

    def _check_accounts(self, state: LedgerState) -> list[ValidationIssue]:
        issues = []

        id_counts = Counter(account.id for account in state.accounts)
        for account_id, count in id_counts.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="accounts",
                    issue_type="duplicate_id",
                    message=f"Account id '{account_id}' is used {count} times",
                    severity="error",
                ))

        serial_counts = Counter(account.serial for account in state.accounts)
        for serial, count in serial_counts.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="accounts",
                    issue_type="duplicate_serial",
                    message=f"Account serial {serial} is used {count} times",
                    severity="error",
                ))

        for index, account in enumerate(state.accounts):
            if not account.name:
                issues.append(ValidationIssue(
                    field=f"accounts[{index}].name",
                    issue_type="missing",
                    message=f"Account '{account.id}' has no name",
                    severity="error",
                    suggested_fix="Give the account a name before importing",
                ))

        return issues

    def _check_transactions(self, state: LedgerState) -> list[ValidationIssue]:
        issues = []
        known = {account.id for account in state.accounts}

        id_counts = Counter(tx.id for tx in state.transactions)
        for tx_id, count in id_counts.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="transactions",
                    issue_type="duplicate_id",
                    message=f"Transaction id '{tx_id}' is used {count} times",
                    severity="error",
                ))

        voucher_counts = Counter(tx.voucher_no for tx in state.transactions)
        for voucher_no, count in voucher_counts.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="transactions",
                    issue_type="duplicate_voucher",
                    message=f"Voucher #{voucher_no} appears {count} times",
                    severity="warning",
                    suggested_fix="Same-day vouchers with equal numbers sort ambiguously",
                ))

        for index, tx in enumerate(state.transactions):
            path = f"transactions[{index}]"

            if len(tx.lines) < MIN_LINES:
                issues.append(ValidationIssue(
                    field=f"{path}.lines",
                    issue_type="too_few_lines",
                    message=f"Voucher #{tx.voucher_no} has fewer than 2 lines",
                    severity="error",
                ))

            if abs(tx.total_dr - tx.total_cr) > self._tolerance:
                issues.append(ValidationIssue(
                    field=f"{path}.lines",
                    issue_type="unbalanced",
                    message=(
                        f"Voucher #{tx.voucher_no} does not balance: "
                        f"debit {tx.total_dr}, credit {tx.total_cr}"
                    ),
                    severity="error",
                ))

            line_counts = Counter(line.id for line in tx.lines if line.id)
            for line_id, count in line_counts.items():
                if count > 1:
                    issues.append(ValidationIssue(
                        field=f"{path}.lines",
                        issue_type="duplicate_id",
                        message=f"Voucher #{tx.voucher_no} repeats line id '{line_id}'",
                        severity="error",
                    ))

            for line_index, line in enumerate(tx.lines):
                line_path = f"{path}.lines[{line_index}]"
                if line.dr < 0 or line.cr < 0:
                    issues.append(ValidationIssue(
                        field=line_path,
                        issue_type="negative_amount",
                        message=f"Voucher #{tx.voucher_no} has a negative amount",
                        severity="error",
                    ))
                if line.dr > 0 and line.cr > 0:
                    issues.append(ValidationIssue(
                        field=line_path,
                        issue_type="two_sided_line",
                        message=f"Voucher #{tx.voucher_no} has a line with both debit and credit",
                        severity="error",
                    ))
                if line.account_id not in known:
                    issues.append(ValidationIssue(
                        field=f"{line_path}.accountId",
                        issue_type="dangling_reference",
                        message=(
                            f"Voucher #{tx.voucher_no} references unknown "
                            f"account '{line.account_id}'"
                        ),
                        severity="error",
                    ))

        return issues

    def _check_counters(self, state: LedgerState) -> list[ValidationIssue]:
        issues = []

        if state.accounts:
            highest_serial = max(account.serial for account in state.accounts)
            if state.meta.next_account_serial <= highest_serial:
                issues.append(ValidationIssue(
                    field="meta.nextAccountSerial",
                    issue_type="stale_counter",
                    message=(
                        f"Next account serial ({state.meta.next_account_serial}) "
                        f"is not above the highest serial in use ({highest_serial})"
                    ),
                    severity="warning",
                ))

        if state.transactions:
            highest_voucher = max(tx.voucher_no for tx in state.transactions)
            if state.meta.next_voucher_no <= highest_voucher:
                issues.append(ValidationIssue(
                    field="meta.nextVoucherNo",
                    issue_type="stale_counter",
                    message=(
                        f"Next voucher number ({state.meta.next_voucher_no}) "
                        f"is not above the highest voucher in use ({highest_voucher})"
                    ),
                    severity="warning",
                ))

        return issues
