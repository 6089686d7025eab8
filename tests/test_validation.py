import pytest

from bankrecon.models import (
    BankStatement, BouncedItemRecord, CheckRecord, DepositRecord, FacilityRecord, VALIDATION_MISMATCH,
)
from bankrecon.validation import StatementValidator


def make_statement(closing, facilities=(), bounced=()):
    return BankStatement(
        bank="BDK",
        statement_date="2025-06-20",
        opening_balance=15_450_000,
        closing_balance=closing,
        deposits=[DepositRecord("BDK", "2025-06-20", "2025-06-18", 1_250_000, "VERSEMENT")],
        checks=[CheckRecord("BDK", "2025-06-20", "2025-06-17", "4512", 750_000)],
        facilities=list(facilities),
        bounced_items=list(bounced),
    )


@pytest.fixture
def validator():
    return StatementValidator()


def test_balanced_statement_has_no_warnings(validator):
    result = validator.validate(make_statement(15_950_000))
    report = result.data
    assert result.success
    assert report.expected_closing == 15_950_000
    assert report.discrepancy == 0
    assert report.balanced
    assert result.warnings == []


def test_discrepancy_beyond_tolerance_warns(validator):
    result = validator.validate(make_statement(20_000_000))
    report = result.data
    assert result.success
    assert report.is_valid
    assert report.discrepancy == 4_050_000
    assert report.tolerance == 200_000
    assert not report.balanced
    assert [w.code for w in result.warnings] == [VALIDATION_MISMATCH]
    assert result.warnings[0].field == "closing_balance"


def test_small_discrepancy_within_tolerance(validator):
    report = validator.validate(make_statement(15_955_000)).data
    assert report.discrepancy == 5_000
    assert report.balanced


def test_tolerance_floor():
    validator = StatementValidator()
    assert validator.tolerance_for(100_000) == 10_000
    assert validator.tolerance_for(-5_000_000) == 50_000


def test_facility_and_bounced_item_checks(validator):
    facilities = [
        FacilityRecord("BDK", "2025-06-20", "DECOUVERT", 10_000_000, 12_000_000, 0),
        FacilityRecord("BDK", "2025-06-20", "ESCOMPTE", 10_000_000, 4_000_000, 5_000_000),
    ]
    bounced = [
        BouncedItemRecord("BDK", "2025-06-20", "2025-06-15", "UNKNOWN", 100_000),
        BouncedItemRecord("BDK", "2025-06-20", "2025-06-15", "C9", 0),
        BouncedItemRecord("BDK", "2025-06-20", "2025-06-20", "VARIOUS", 0, synthetic=True),
    ]
    result = validator.validate(make_statement(15_950_000, facilities, bounced))
    messages = [w.message for w in result.warnings]
    assert result.success
    assert len(messages) == 5
    assert any("exceeds limit" in m for m in messages)
    assert sum("inconsistent" in m for m in messages) == 2
    assert any("no client code" in m for m in messages)
    assert any("non-positive" in m for m in messages)


def test_negative_balances_warn(validator):
    statement = make_statement(-100_000)
    statement.opening_balance = -800_000
    fields = [w.field for w in validator.validate(statement).warnings]
    assert fields.count("opening_balance") == 1
    assert "closing_balance" in fields
