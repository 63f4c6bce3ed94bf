"""Tests for voucher and import validation."""

from decimal import Decimal

import pytest

from personal_ledger.errors import ValidationError
from personal_ledger.models.ledger import Account, AccountCreate, LedgerState, TransactionLine
from personal_ledger.validation import LedgerValidator, parse_input

from conftest import voucher


@pytest.fixture
def validator():
    return LedgerValidator(tolerance=Decimal("0.01"))


@pytest.fixture
def document(manager, cash_and_bank):
    """A valid exported ledger with one posted voucher."""
    state, cash, bank = cash_and_bank
    state, _ = manager.save_transaction(state, voucher(bank.id, cash.id, "50"))
    return state.to_document()


class TestVoucherChecks:
    """Single voucher checks."""

    def test_balanced_lines(self, validator):
        lines = [
            TransactionLine(account_id="a", dr=Decimal("1.005")),
            TransactionLine(account_id="b", cr=Decimal("1.00")),
        ]
        assert validator.is_balanced(lines)
        assert validator.totals(lines) == (Decimal("1.005"), Decimal("1.00"))

    def test_duplicate_line_ids_rejected(self, validator, cash_and_bank):
        state, cash, bank = cash_and_bank
        lines = [
            TransactionLine(id="ln_1", account_id=cash.id, cr=Decimal("5")),
            TransactionLine(id="ln_1", account_id=bank.id, dr=Decimal("5")),
        ]
        with pytest.raises(ValidationError, match="Duplicate line ids"):
            validator.validate_lines(lines, state)

    def test_default_tolerance_from_settings(self):
        assert LedgerValidator().tolerance == Decimal("0.01")


class TestParseDocument:
    """Stage 1: the document must parse."""

    def test_valid_document(self, validator, document):
        state, result = validator.parse_document(document)
        assert len(state.accounts) == 2
        assert result.is_valid
        assert result.issues == []

    def test_non_object_rejected(self, validator):
        with pytest.raises(ValidationError, match="JSON object"):
            validator.parse_document([1, 2, 3])

    def test_schema_errors_listed(self, validator, document):
        document["accounts"][0]["serial"] = "first"
        with pytest.raises(ValidationError) as exc_info:
            validator.parse_document(document)

        issues = exc_info.value.issues
        assert issues
        assert issues[0].field.startswith("accounts.0")

    def test_numeric_amounts_accepted(self, validator, document):
        document["accounts"][0]["openingBalance"] = 100
        state, _ = validator.parse_document(document)
        assert state.accounts[0].opening_balance == Decimal("100")

    def test_missing_sections_default_empty(self, validator):
        state, _ = validator.parse_document({})
        assert state == LedgerState()


class TestValidateState:
    """Stage 2: ledger rules over the whole document."""

    def test_unbalanced_voucher_rejected(self, validator, document):
        document["transactions"][0]["lines"][0]["cr"] = "40"
        with pytest.raises(ValidationError) as exc_info:
            validator.parse_document(document)

        types = {issue.issue_type for issue in exc_info.value.issues}
        assert "unbalanced" in types

    def test_dangling_reference_rejected(self, validator, document):
        document["transactions"][0]["lines"][0]["accountId"] = "acc_gone"
        with pytest.raises(ValidationError) as exc_info:
            validator.parse_document(document)

        issue = next(i for i in exc_info.value.issues if i.issue_type == "dangling_reference")
        assert issue.field == "transactions[0].lines[0].accountId"

    def test_duplicate_account_ids_rejected(self, validator, document):
        document["accounts"][1]["id"] = document["accounts"][0]["id"]
        with pytest.raises(ValidationError):
            validator.parse_document(document)

    def test_every_issue_reported(self, validator, document):
        document["accounts"][1]["serial"] = 1
        document["transactions"][0]["lines"] = document["transactions"][0]["lines"][:1]

        result = validator.validate_state(LedgerState.model_validate(document))
        types = {issue.issue_type for issue in result.issues}
        assert {"duplicate_serial", "too_few_lines", "unbalanced"} <= types
        assert not result.semantic_valid

    def test_stale_counters_are_warnings(self, validator, document):
        document["meta"]["nextVoucherNo"] = 1
        document["meta"]["nextAccountSerial"] = 2

        state, result = validator.parse_document(document)
        assert result.is_valid
        assert len(result.warnings) == 2

    def test_duplicate_voucher_numbers_warn(self, validator, document):
        duplicate = dict(document["transactions"][0], id="tx_copy")
        document["transactions"].append(duplicate)

        _, result = validator.parse_document(document)
        assert any("appears 2 times" in warning for warning in result.warnings)

    def test_lenient_mode_trusts_document(self, validator, document):
        document["transactions"][0]["lines"][0]["accountId"] = "acc_gone"
        state, result = validator.parse_document(document, strict=False)

        assert state.transactions[0].lines[0].account_id == "acc_gone"
        assert result.issues == []


class TestParseInput:
    """Caller input coerced into models."""

    def test_model_instance_passes_through(self, cash_and_bank):
        _, cash, _ = cash_and_bank
        assert parse_input(Account, cash) is cash

    def test_dict_is_validated(self):
        created = parse_input(AccountCreate, {"name": "Cash", "opening_balance": "5"})
        assert created.opening_balance == Decimal("5")

    def test_every_bad_field_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_input(AccountCreate, {"opening_balance": "abc"})

        fields = {issue.field for issue in exc_info.value.issues}
        assert fields == {"name", "opening_balance"}
        assert all(issue.severity == "error" for issue in exc_info.value.issues)
