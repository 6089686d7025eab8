"""Arithmetic consistency checks for one statement.

Every finding is a warning: a statement that does not reconcile is still
kept and persisted, with the discrepancy reported alongside it.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List

from .models import (
    BankStatement, Issue, PLACEHOLDER_CLIENT_CODES, Result, VALIDATION_MISMATCH,
)
from .utils import format_amount

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    bank: str
    statement_date: str
    expected_closing: int
    reported_closing: int
    discrepancy: int
    tolerance: float
    is_valid: bool = True
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)

    @property
    def balanced(self) -> bool:
        return self.discrepancy <= self.tolerance

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["errors"] = [e.to_dict() for e in self.errors]
        data["warnings"] = [w.to_dict() for w in self.warnings]
        data["balanced"] = self.balanced
        return data


class StatementValidator:
    """Checks opening + uncredited deposits - outstanding checks against closing."""

    def __init__(self, tolerance_floor: int = 10000, tolerance_ratio: float = 0.01,
                 facility_tolerance: int = 1000):
        self.tolerance_floor = tolerance_floor
        self.tolerance_ratio = tolerance_ratio
        self.facility_tolerance = facility_tolerance

    def tolerance_for(self, reported_closing: int) -> float:
        return max(float(self.tolerance_floor), abs(reported_closing) * self.tolerance_ratio)

    def validate(self, statement: BankStatement) -> Result:
        expected = statement.opening_balance + statement.total_deposits - statement.total_checks
        reported = statement.closing_balance
        report = ValidationReport(
            bank=statement.bank,
            statement_date=statement.statement_date,
            expected_closing=expected,
            reported_closing=reported,
            discrepancy=abs(reported - expected),
            tolerance=self.tolerance_for(reported),
        )

        def warn(message: str, field_name: str = None):
            report.warnings.append(Issue(VALIDATION_MISMATCH, message, field_name))

        if not report.balanced:
            warn(f"Closing balance {format_amount(reported)} differs from expected "
                 f"{format_amount(expected)} by {format_amount(report.discrepancy)}", "closing_balance")

        if statement.opening_balance < 0:
            warn(f"Negative opening balance {format_amount(statement.opening_balance)}", "opening_balance")
        if statement.closing_balance < 0:
            warn(f"Negative closing balance {format_amount(statement.closing_balance)}", "closing_balance")

        for facility in statement.facilities:
            if facility.used_amount > facility.limit_amount:
                warn(f"Facility {facility.facility_type}: used {format_amount(facility.used_amount)} "
                     f"exceeds limit {format_amount(facility.limit_amount)}", "facilities")
            computed = facility.limit_amount - facility.used_amount
            if abs(facility.available_amount - computed) > self.facility_tolerance:
                warn(f"Facility {facility.facility_type}: available {format_amount(facility.available_amount)} "
                     f"inconsistent with limit - used ({format_amount(computed)})", "facilities")

        for item in statement.bounced_items:
            if item.synthetic:
                continue
            if (item.client_code or "").strip().upper() in PLACEHOLDER_CLIENT_CODES:
                warn(f"Bounced item due {item.due_date} has no client code", "bounced_items")
            if item.amount <= 0:
                warn(f"Bounced item for {item.client_code} has non-positive amount {item.amount}",
                     "bounced_items")

        report.is_valid = not report.errors
        if report.warnings:
            logger.warning(f"{statement.bank} {statement.statement_date}: {len(report.warnings)} validation warnings")
        return Result(success=report.is_valid, data=report, errors=list(report.errors),
                      warnings=list(report.warnings))
