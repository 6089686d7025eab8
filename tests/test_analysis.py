from datetime import datetime

import pytest

from bankrecon.analysis import (
    CRITICAL, HIGH, LOW, MEDIUM, CrossEntityRiskAggregator, bank_risk_level, consolidated_position,
    generate_alerts,
)
from bankrecon.models import BankStatement, BouncedItemRecord, FacilityRecord


def bounced(bank, client, amount, synthetic=False):
    return BouncedItemRecord(bank=bank, statement_date="2025-06-20", due_date="2025-06-15",
                             client_code=client, amount=amount, synthetic=synthetic)


@pytest.fixture
def aggregator():
    return CrossEntityRiskAggregator()


def test_two_bank_client_is_high_and_cross_bank(aggregator):
    report = aggregator.aggregate([
        bounced("BDK", "C7", 15_000_000),
        bounced("ATB", "c7", 10_000_000),
    ])
    [profile] = report.profiles
    assert profile.client_code == "C7"
    assert profile.total_exposure == 25_000_000
    assert profile.bank_count == 2
    assert profile.banks == ["BDK", "ATB"]
    assert profile.risk_tier == HIGH
    assert report.cross_bank == [profile]


def test_single_bank_clients_keep_a_tier_but_are_not_cross_bank(aggregator):
    report = aggregator.aggregate([
        bounced("BDK", "A", 1_000_000),
        bounced("BDK", "B", 60_000_000),
        bounced("BDK", "A", 500_000),
    ])
    assert [(p.client_code, p.risk_tier, p.item_count) for p in report.profiles] == [
        ("B", CRITICAL, 1), ("A", LOW, 2)]
    assert report.cross_bank == []


def test_equal_exposures_keep_first_seen_order(aggregator):
    report = aggregator.aggregate([bounced("BDK", "X", 100), bounced("ATB", "Y", 100), bounced("ORA", "Z", 100)])
    assert [p.client_code for p in report.profiles] == ["X", "Y", "Z"]


def test_aggregate_and_placeholder_codes_are_skipped(aggregator):
    report = aggregator.aggregate([
        bounced("BDK", "VARIOUS", 9_000_000, synthetic=True),
        bounced("ATB", "UNKNOWN", 1_000_000),
        bounced("ORA", "C1", 2_000_000),
    ])
    assert [p.client_code for p in report.profiles] == ["C1"]
    assert report.skipped_items == 2


@pytest.mark.parametrize("exposure,banks,tier", [
    (60_000_000, 1, CRITICAL),
    (25_000_000, 1, HIGH),
    (5_000_000, 3, HIGH),
    (15_000_000, 1, MEDIUM),
    (5_000_000, 2, MEDIUM),
    (5_000_000, 1, LOW),
    (50_000_000, 1, HIGH),
])
def test_tier_thresholds(aggregator, exposure, banks, tier):
    assert aggregator.tier_for(exposure, banks) == tier


def test_analyze_reads_all_statements(aggregator):
    statements = [
        BankStatement("BDK", "2025-06-20", bounced_items=[bounced("BDK", "C1", 3_000_000)]),
        BankStatement("SGBS", "2025-06-20", bounced_items=[bounced("SGBS", "C1", 8_000_000)]),
    ]
    result = aggregator.analyze(statements)
    assert result.success
    assert result.data.cross_bank[0].risk_tier == MEDIUM
    assert result.data.to_dict()["profiles"][0]["banks"] == ["BDK", "SGBS"]


def test_bank_risk_level():
    assert bank_risk_level(5, 10, 0) == LOW
    assert bank_risk_level(-25, 10, 0) == HIGH
    assert bank_risk_level(0, 45, 0) == MEDIUM
    assert bank_risk_level(0, 0, 31_000_000) == CRITICAL


def make_position():
    statements = [
        BankStatement("BDK", "2025-06-20", opening_balance=10_000_000, closing_balance=20_000_000,
                      facilities=[FacilityRecord("BDK", "2025-06-20", "DECOUVERT", 50_000_000, 45_000_000,
                                                 5_000_000)]),
        BankStatement("ATB", "2025-06-20", opening_balance=10_000_000, closing_balance=10_500_000),
    ]
    return consolidated_position(statements)


def test_consolidated_position():
    position = make_position()
    bdk, atb = position.banks
    assert bdk.movement == 10_000_000
    assert bdk.movement_pct == 100.0
    assert bdk.facility_utilisation == 90.0
    assert bdk.risk_level == CRITICAL
    assert atb.movement_pct == 5.0
    assert atb.facility_utilisation == 0.0
    assert position.total_opening == 20_000_000
    assert position.total_closing == 30_500_000
    assert position.net_movement == 10_500_000
    assert position.variance_pct == 52.5


def test_alerts_are_generated_and_sorted():
    risk = CrossEntityRiskAggregator().aggregate([bounced("BDK", "C7", 15_000_000), bounced("ATB", "C7", 10_000_000)])
    now = datetime(2025, 6, 20, 9, 30)
    alerts = generate_alerts(make_position(), risk, now=now)

    triggers = [a.trigger for a in alerts]
    assert sorted(triggers) == sorted(["CRITICAL_VARIANCE", "CROSS_BANK_RISK", "LARGE_MOVEMENT", "FACILITY_OVERUSE"])
    types = [a.type for a in alerts]
    assert types == sorted(types, key=["CRITICAL", "WARNING", "INFO"].index)
    cross = next(a for a in alerts if a.trigger == "CROSS_BANK_RISK")
    assert cross.type == "WARNING"
    assert "C7" in cross.title
    data = alerts[0].to_dict()
    assert data["createdAt"] == "2025-06-20T09:30:00"
    assert set(data) == {"type", "title", "description", "action", "trigger", "value", "threshold", "createdAt"}


def test_no_alerts_for_quiet_period():
    statements = [BankStatement("BDK", "2025-06-20", opening_balance=1_000_000, closing_balance=1_010_000)]
    risk = CrossEntityRiskAggregator().aggregate([])
    assert generate_alerts(consolidated_position(statements), risk) == []
