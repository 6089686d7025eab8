import pytest

from bankrecon.matching import (
    CHEQUE_RULES, GENERIC_RULES, ReconciliationMatcher, RuleEngine, normalize_instrument, summarize_matches,
)
from bankrecon.models import (
    BankStatement, BouncedItemRecord, CHEQUE, CollectionRecord, DRAFT, DepositRecord, GENERIC,
)


def deposit(amount, client=None, label="VERSEMENT", value_date=None, reference=None, bank="ATB",
            synthetic=False):
    return DepositRecord(bank=bank, statement_date="2025-06-20", deposit_date="2025-06-19", amount=amount,
                         instrument_type=label, value_date=value_date, client_code=client,
                         reference=reference, synthetic=synthetic)


@pytest.fixture
def matcher():
    return ReconciliationMatcher()


def test_generic_exact_match_is_perfect(matcher):
    collection = CollectionRecord(client_code="C1", amount=500_000, statement_date="2025-06-20")
    candidate = deposit(500_000, client="C1", value_date="2025-06-20")
    result = matcher.match(collection, [candidate])
    assert result.confidence >= 80
    assert result.status == "perfect"
    assert result.match_type == "generic"
    assert result.matched_record is candidate


def test_amount_rules_are_exclusive(matcher):
    collection = CollectionRecord(client_code="C1", amount=500_000, statement_date="2025-06-20")
    result = matcher.match(collection, [deposit(500_000, label="")])
    assert result.confidence == 50
    assert result.reasons == ["amount_exact (+50)"]


def test_generic_near_amount_and_week_window(matcher):
    collection = CollectionRecord(client_code="c1", amount=500_000, statement_date="2025-06-20")
    result = matcher.match(collection, [deposit(490_000, client="C1", value_date="2025-06-14")])
    # 5% amount (+30), label (+20), within 7 days (+10), same client (+10)
    assert result.confidence == 70
    assert result.status == "partial"


def test_bounced_draft_short_circuits_deposit_search(matcher):
    collection = CollectionRecord(client_code="C3", amount=2_000_000, statement_date="2025-06-20",
                                  instrument_type=DRAFT, draft_due_date="2025-06-20")
    bounced = BouncedItemRecord(bank="BDK", statement_date="2025-06-20", due_date="2025-06-20",
                                client_code="C3", amount=2_000_000)
    tempting = deposit(2_000_000, client="C3", label="REMISE EFFET", value_date="2025-06-20")

    result = matcher.match(collection, [tempting], [bounced])
    assert result.match_type == "draft"
    assert result.confidence == 90
    assert result.status == "perfect"
    assert result.matched_bounced_item is bounced
    assert result.matched_record is None


def test_bounced_item_outside_window_is_ignored(matcher):
    collection = CollectionRecord(client_code="C3", amount=2_000_000, statement_date="2025-06-20",
                                  instrument_type=DRAFT, draft_due_date="2025-06-20")
    late = BouncedItemRecord(bank="BDK", statement_date="2025-06-20", due_date="2025-06-10",
                             client_code="C3", amount=2_000_000)
    other_amount = BouncedItemRecord(bank="BDK", statement_date="2025-06-20", due_date="2025-06-20",
                                     client_code="C3", amount=1_990_000)
    candidate = deposit(2_000_000, client="C3", label="EFFET", value_date="2025-06-22")

    result = matcher.match(collection, [candidate], [late, other_amount])
    assert result.matched_bounced_item is None
    assert result.matched_record is candidate
    # exact (+50), EFFET (+20), due date within 3 days (+20), same client (+10)
    assert result.confidence == 100


def test_cheque_scoring(matcher):
    collection = CollectionRecord(client_code="C5", amount=300_000, statement_date="2025-06-20",
                                  instrument_type=CHEQUE, check_number="4512")
    exact = deposit(300_000, client="C5", label="REMISE CHEQUE", reference="CHQ 4512")
    near = deposit(290_000, client="C5", label="REMISE CHQ", reference="CHQ 4512")

    assert matcher.match(collection, [exact]).confidence == 100
    result = matcher.match(collection, [near])
    assert result.confidence == 85
    assert result.match_type == "cheque"


def test_tie_goes_to_first_candidate(matcher):
    collection = CollectionRecord(client_code="C1", amount=100_000, statement_date="2025-06-20")
    first = deposit(100_000, client="C1", reference="A")
    second = deposit(100_000, client="C1", reference="B")
    assert matcher.match(collection, [first, second]).matched_record is first
    assert matcher.match(collection, [second, first]).matched_record is second


def test_synthetic_totals_are_not_candidates(matcher):
    collection = CollectionRecord(client_code="VARIOUS", amount=5_000_000, statement_date="2025-06-20")
    total = deposit(5_000_000, client="VARIOUS", label="TOTAL", reference="TOTAL_DEPOSITS", synthetic=True)
    result = matcher.match(collection, [total])
    assert result.matched_record is None
    assert result.match_type == "none"
    assert result.status == "unmatched"
    assert result.confidence == 0


def test_matching_is_deterministic(matcher):
    collection = CollectionRecord(client_code="C1", amount=100_000, statement_date="2025-06-20")
    candidates = [deposit(100_000, reference="A"), deposit(99_000, client="C1", reference="B"),
                  deposit(100_000, client="C1", value_date="2025-06-21", reference="C")]
    assert matcher.match(collection, candidates).to_dict() == matcher.match(collection, candidates).to_dict()


def test_rule_engine_first_rule_of_group_wins():
    collection = CollectionRecord(client_code="C1", amount=100_000, statement_date="2025-06-20")
    score, reasons = RuleEngine(GENERIC_RULES).score(collection, deposit(100_000, value_date="2025-06-20"))
    assert score == 90
    assert "value_date_within_7_days (+10)" not in reasons

    score, _ = RuleEngine(CHEQUE_RULES).score(collection, deposit(1))
    assert score == 0


@pytest.mark.parametrize("raw,expected", [
    ("EFFET", DRAFT), ("draft", DRAFT), ("CHQ", CHEQUE), ("Chèque", CHEQUE), (None, GENERIC), ("virement", GENERIC),
])
def test_normalize_instrument(raw, expected):
    assert normalize_instrument(raw) == expected


def test_reconcile_across_statements(matcher):
    bdk = BankStatement(bank="BDK", statement_date="2025-06-20",
                        deposits=[deposit(750_000, client="C001", label="REGLEMENT FACTURE", bank="BDK")],
                        bounced_items=[BouncedItemRecord("BDK", "2025-06-20", "2025-06-15", "C003", 2_000_000)])
    atb = BankStatement(bank="ATB", statement_date="2025-06-20",
                        deposits=[deposit(500_000, client="C001", value_date="2025-06-20")])
    collections = [
        CollectionRecord("C001", 750_000, "2025-06-20"),
        CollectionRecord("C003", 2_000_000, "2025-06-20", instrument_type=DRAFT, draft_due_date="2025-06-16"),
        CollectionRecord("C999", 42, "2025-06-20", instrument_type=CHEQUE, check_number="1"),
    ]
    report = matcher.reconcile(collections, [bdk, atb]).data

    assert [r.status for r in report.results] == ["perfect", "perfect", "unmatched"]
    assert report.results[0].matched_record.bank == "BDK"
    assert report.results[1].matched_bounced_item.bank == "BDK"
    assert [r.collection.client_code for r in report.unmatched] == ["C999"]
    assert report.summary["by_status"] == {"perfect": 2, "partial": 0, "unmatched": 1}
    assert report.summary["by_match_type"] == {"draft": 1, "cheque": 0, "generic": 1, "none": 1}
    assert report.summary["matched_amount"] == 2_750_000
    assert report.summary["unmatched_amount"] == 42
    assert report.summary["match_rate"] == 66.67


def test_summary_of_nothing():
    assert summarize_matches([])["match_rate"] == 0.0
