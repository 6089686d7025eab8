"""Analysis module: cross-bank risk, consolidated position and alerts.

Everything here is recomputed from the current statements on each call;
nothing is updated incrementally.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    Alert, BankStatement, BouncedItemRecord, ClientRiskProfile, PLACEHOLDER_CLIENT_CODES, Result,
)
from .utils import format_amount

logger = logging.getLogger(__name__)

CRITICAL, HIGH, MEDIUM, LOW = "CRITICAL", "HIGH", "MEDIUM", "LOW"
SEVERITY_ORDER = {"CRITICAL": 0, "WARNING": 1, "INFO": 2}


@dataclass
class RiskReport:
    profiles: List[ClientRiskProfile] = field(default_factory=list)
    cross_bank: List[ClientRiskProfile] = field(default_factory=list)
    skipped_items: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profiles": [p.to_dict() for p in self.profiles],
            "cross_bank": [p.to_dict() for p in self.cross_bank],
            "skipped_items": self.skipped_items,
        }


class CrossEntityRiskAggregator:
    """Groups bounced items by client across banks and assigns a risk tier."""

    def __init__(self, critical_exposure: int = 50_000_000, high_exposure: int = 20_000_000,
                 medium_exposure: int = 10_000_000, high_bank_count: int = 2, medium_bank_count: int = 1):
        self.critical_exposure = critical_exposure
        self.high_exposure = high_exposure
        self.medium_exposure = medium_exposure
        self.high_bank_count = high_bank_count
        self.medium_bank_count = medium_bank_count

    def tier_for(self, exposure: int, bank_count: int) -> str:
        if exposure > self.critical_exposure:
            return CRITICAL
        if exposure > self.high_exposure or bank_count > self.high_bank_count:
            return HIGH
        if exposure > self.medium_exposure or bank_count > self.medium_bank_count:
            return MEDIUM
        return LOW

    def aggregate(self, bounced_items: Sequence[BouncedItemRecord]) -> RiskReport:
        groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        skipped = 0
        for item in bounced_items:
            code = (item.client_code or "").strip().upper()
            if item.synthetic or code in PLACEHOLDER_CLIENT_CODES:
                skipped += 1
                continue
            group = groups.setdefault(code, {"exposure": 0, "banks": [], "count": 0})
            group["exposure"] += item.amount
            group["count"] += 1
            if item.bank not in group["banks"]:
                group["banks"].append(item.bank)

        profiles = [
            ClientRiskProfile(
                client_code=code,
                total_exposure=g["exposure"],
                bank_count=len(g["banks"]),
                banks=list(g["banks"]),
                risk_tier=self.tier_for(g["exposure"], len(g["banks"])),
                item_count=g["count"],
            )
            for code, g in groups.items()
        ]
        # sorted() is stable: equal exposures keep first-seen order
        profiles = sorted(profiles, key=lambda p: -p.total_exposure)
        cross_bank = [p for p in profiles if p.bank_count > 1]
        if skipped:
            logger.info(f"Risk aggregation skipped {skipped} aggregate or unidentified bounced items")
        return RiskReport(profiles=profiles, cross_bank=cross_bank, skipped_items=skipped)

    def analyze(self, statements: Sequence[BankStatement]) -> Result:
        report = self.aggregate([b for s in statements for b in s.bounced_items])
        logger.info(f"Risk analysis: {len(report.profiles)} clients, {len(report.cross_bank)} cross-bank")
        return Result(success=True, data=report)


@dataclass
class BankPosition:
    bank: str
    statement_date: str
    opening_balance: int
    closing_balance: int
    movement: int
    movement_pct: float
    deposits_total: int
    checks_total: int
    facility_limit: int
    facility_used: int
    facility_available: int
    facility_utilisation: float
    bounced_count: int
    bounced_amount: int
    risk_level: str


@dataclass
class ConsolidatedPosition:
    banks: List[BankPosition] = field(default_factory=list)
    total_opening: int = 0
    total_closing: int = 0
    net_movement: int = 0
    variance_pct: float = 0.0
    total_facility_limit: int = 0
    total_facility_used: int = 0
    total_bounced: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _pct(part: float, whole: float) -> float:
    return round(part / abs(whole) * 100.0, 2) if whole else 0.0


def bank_risk_level(movement_pct: float, utilisation: float, bounced_amount: int) -> str:
    movement = abs(movement_pct)
    if movement > 50 or utilisation > 80 or bounced_amount > 30_000_000:
        return CRITICAL
    if movement > 20 or utilisation > 60 or bounced_amount > 15_000_000:
        return HIGH
    if movement > 10 or utilisation > 40 or bounced_amount > 5_000_000:
        return MEDIUM
    return LOW


def consolidated_position(statements: Sequence[BankStatement]) -> ConsolidatedPosition:
    """Per-bank analysis and totals across all statements of the period."""
    position = ConsolidatedPosition()
    for statement in statements:
        movement = statement.closing_balance - statement.opening_balance
        limit = sum(f.limit_amount for f in statement.facilities)
        used = sum(f.used_amount for f in statement.facilities)
        available = sum(f.available_amount for f in statement.facilities)
        movement_pct = _pct(movement, statement.opening_balance)
        utilisation = _pct(used, limit)
        bounced_amount = statement.total_bounced
        position.banks.append(BankPosition(
            bank=statement.bank,
            statement_date=statement.statement_date,
            opening_balance=statement.opening_balance,
            closing_balance=statement.closing_balance,
            movement=movement,
            movement_pct=movement_pct,
            deposits_total=statement.total_deposits,
            checks_total=statement.total_checks,
            facility_limit=limit,
            facility_used=used,
            facility_available=available,
            facility_utilisation=utilisation,
            bounced_count=len(statement.bounced_items),
            bounced_amount=bounced_amount,
            risk_level=bank_risk_level(movement_pct, utilisation, bounced_amount),
        ))
        position.total_opening += statement.opening_balance
        position.total_closing += statement.closing_balance
        position.total_facility_limit += limit
        position.total_facility_used += used
        position.total_bounced += bounced_amount

    position.net_movement = position.total_closing - position.total_opening
    position.variance_pct = _pct(position.net_movement, position.total_opening)
    return position


def generate_alerts(position: ConsolidatedPosition, risk: RiskReport,
                    variance_threshold: float = 10.0, movement_threshold: float = 30.0,
                    utilisation_threshold: float = 80.0, now: Optional[datetime] = None) -> List[Alert]:
    """Critical alerts for the dashboard collaborator, most severe first."""
    created_at = (now or datetime.now()).isoformat(timespec="seconds")
    alerts: List[Alert] = []

    if abs(position.variance_pct) > variance_threshold:
        alerts.append(Alert(
            type="CRITICAL",
            title="Significant global variance",
            description=f"Consolidated balance moved {position.variance_pct:+.1f}% "
                        f"({format_amount(position.net_movement)}) across all banks",
            action="Review the largest movements before approving the position",
            trigger="CRITICAL_VARIANCE",
            value=position.variance_pct,
            threshold=variance_threshold,
            created_at=created_at,
        ))

    for profile in risk.cross_bank:
        if profile.risk_tier not in (CRITICAL, HIGH):
            continue
        alerts.append(Alert(
            type="CRITICAL" if profile.risk_tier == CRITICAL else "WARNING",
            title=f"Cross-bank risk: {profile.client_code}",
            description=f"{profile.client_code} has {format_amount(profile.total_exposure)} of bounced items "
                        f"across {profile.bank_count} banks ({', '.join(profile.banks)})",
            action="Suspend new credit and contact the client",
            trigger="CROSS_BANK_RISK",
            value=float(profile.total_exposure),
            threshold=float(profile.bank_count),
            created_at=created_at,
        ))

    for bank in position.banks:
        if abs(bank.movement_pct) > movement_threshold:
            alerts.append(Alert(
                type="WARNING",
                title=f"Large movement at {bank.bank}",
                description=f"{bank.bank} balance moved {bank.movement_pct:+.1f}% "
                            f"({format_amount(bank.movement)})",
                action="Confirm the movement with the bank statement detail",
                trigger="LARGE_MOVEMENT",
                value=bank.movement_pct,
                threshold=movement_threshold,
                created_at=created_at,
            ))
        if bank.facility_utilisation > utilisation_threshold:
            alerts.append(Alert(
                type="CRITICAL",
                title=f"Facility overuse at {bank.bank}",
                description=f"{bank.bank} facilities are {bank.facility_utilisation:.1f}% used "
                            f"({format_amount(bank.facility_used)} of {format_amount(bank.facility_limit)})",
                action="Reduce drawings or request a limit increase",
                trigger="FACILITY_OVERUSE",
                value=bank.facility_utilisation,
                threshold=utilisation_threshold,
                created_at=created_at,
            ))

    return sorted(alerts, key=lambda a: SEVERITY_ORDER.get(a.type, 3))
