"""Confidence-scored reconciliation of expected collections with bank movements.

Each instrument type owns an ordered list of ``ScoringRule`` objects that a
single ``RuleEngine`` evaluates. Rules sharing a ``group`` are alternatives:
only the first satisfied rule of a group contributes (e.g. exact amount
+50 or amount within 5% +30, never both).

Draft collections are first checked against bounced items; a bounced draft
is reported as such and never matched to a deposit.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .models import (
    BankStatement, BouncedItemRecord, CHEQUE, CollectionRecord, DRAFT, DepositRecord, GENERIC,
    MatchResult, Result, status_for_confidence,
)
from .utils import days_between, format_amount

logger = logging.getLogger(__name__)

BOUNCED_DRAFT_CONFIDENCE = 90

Predicate = Callable[[CollectionRecord, DepositRecord], bool]


@dataclass(frozen=True)
class ScoringRule:
    name: str
    weight: int
    predicate: Predicate
    group: Optional[str] = None


def _same_code(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().upper() == b.strip().upper()


def amount_exact(collection: CollectionRecord, deposit: DepositRecord) -> bool:
    return abs(collection.amount - deposit.amount) < 1


def amount_within_5pct(collection: CollectionRecord, deposit: DepositRecord) -> bool:
    if collection.amount <= 0:
        return False
    return abs(collection.amount - deposit.amount) / collection.amount < 0.05


def draft_label(collection: CollectionRecord, deposit: DepositRecord) -> bool:
    return "EFFET" in (deposit.instrument_type or "").upper()


def cheque_label(collection: CollectionRecord, deposit: DepositRecord) -> bool:
    label = (deposit.instrument_type or "").upper()
    return "CHEQUE" in label or "CHQ" in label


def any_label(collection: CollectionRecord, deposit: DepositRecord) -> bool:
    return bool((deposit.instrument_type or "").strip())


def check_number_in_reference(collection: CollectionRecord, deposit: DepositRecord) -> bool:
    return bool(collection.check_number) and bool(deposit.reference) \
        and collection.check_number.strip() in deposit.reference


def same_client(collection: CollectionRecord, deposit: DepositRecord) -> bool:
    return _same_code(collection.client_code, deposit.client_code)


def _value_date_within(days: int, reference: Callable[[CollectionRecord], Optional[str]]) -> Predicate:
    def predicate(collection: CollectionRecord, deposit: DepositRecord) -> bool:
        distance = days_between(reference(collection), deposit.value_date)
        return distance is not None and distance <= days
    return predicate


def _due_date(collection: CollectionRecord) -> Optional[str]:
    return collection.draft_due_date


def _statement_date(collection: CollectionRecord) -> Optional[str]:
    return collection.statement_date


DRAFT_RULES = (
    ScoringRule("amount_exact", 50, amount_exact, group="amount"),
    ScoringRule("amount_within_5pct", 30, amount_within_5pct, group="amount"),
    ScoringRule("draft_label", 20, draft_label),
    ScoringRule("due_date_within_3_days", 20, _value_date_within(3, _due_date), group="date"),
    ScoringRule("due_date_within_7_days", 10, _value_date_within(7, _due_date), group="date"),
    ScoringRule("same_client", 10, same_client),
)

CHEQUE_RULES = (
    ScoringRule("amount_exact", 40, amount_exact, group="amount"),
    ScoringRule("amount_within_5pct", 25, amount_within_5pct, group="amount"),
    ScoringRule("check_number_in_reference", 30, check_number_in_reference),
    ScoringRule("cheque_label", 20, cheque_label),
    ScoringRule("same_client", 10, same_client),
)

GENERIC_RULES = (
    ScoringRule("amount_exact", 50, amount_exact, group="amount"),
    ScoringRule("amount_within_5pct", 30, amount_within_5pct, group="amount"),
    ScoringRule("instrument_label", 20, any_label),
    ScoringRule("value_date_within_3_days", 20, _value_date_within(3, _statement_date), group="date"),
    ScoringRule("value_date_within_7_days", 10, _value_date_within(7, _statement_date), group="date"),
    ScoringRule("same_client", 10, same_client),
)


class RuleEngine:
    """Evaluates an ordered rule list for one (collection, candidate) pair."""

    def __init__(self, rules: Sequence[ScoringRule]):
        self.rules = tuple(rules)

    def score(self, collection: CollectionRecord, candidate: DepositRecord) -> Tuple[int, List[str]]:
        total = 0
        reasons = []
        used_groups = set()
        for rule in self.rules:
            if rule.group is not None and rule.group in used_groups:
                continue
            if rule.predicate(collection, candidate):
                total += rule.weight
                reasons.append(f"{rule.name} (+{rule.weight})")
                if rule.group is not None:
                    used_groups.add(rule.group)
        return total, reasons


def normalize_instrument(raw: Optional[str]) -> str:
    value = (raw or "").strip().upper()
    if value in ("EFFET", "DRAFT", "EFFETS", "LCR", "TRAITE"):
        return DRAFT
    if value in ("CHEQUE", "CHQ", "CHECK", "CHÈQUE"):
        return CHEQUE
    return GENERIC


MATCH_TYPES = {DRAFT: "draft", CHEQUE: "cheque", GENERIC: "generic"}


@dataclass
class ReconciliationReport:
    results: List[MatchResult] = field(default_factory=list)
    summary: Dict[str, object] = field(default_factory=dict)

    @property
    def unmatched(self) -> List[MatchResult]:
        return [r for r in self.results if r.status == "unmatched"]

    def to_dict(self) -> Dict[str, object]:
        return {"summary": dict(self.summary), "results": [r.to_dict() for r in self.results]}


class ReconciliationMatcher:
    """Matches each expected collection to its best bank movement."""

    def __init__(self, rule_sets: Optional[Dict[str, Sequence[ScoringRule]]] = None,
                 bounced_day_window: int = 3, bounced_amount_tolerance: int = 1000,
                 debug: bool = False):
        rule_sets = rule_sets or {DRAFT: DRAFT_RULES, CHEQUE: CHEQUE_RULES, GENERIC: GENERIC_RULES}
        self.engines = {instrument: RuleEngine(rules) for instrument, rules in rule_sets.items()}
        self.bounced_day_window = bounced_day_window
        self.bounced_amount_tolerance = bounced_amount_tolerance
        self.debug = debug

    def match(self, collection: CollectionRecord, deposits: Sequence[DepositRecord],
              bounced_items: Sequence[BouncedItemRecord] = ()) -> MatchResult:
        instrument = normalize_instrument(collection.instrument_type)

        if instrument == DRAFT:
            bounced = self._find_bounced_draft(collection, bounced_items)
            if bounced is not None:
                return MatchResult(
                    collection=collection,
                    confidence=BOUNCED_DRAFT_CONFIDENCE,
                    status=status_for_confidence(BOUNCED_DRAFT_CONFIDENCE),
                    match_type="draft",
                    matched_bounced_item=bounced,
                    reasons=[f"bounced draft on {bounced.bank} due {bounced.due_date} "
                             f"for {format_amount(bounced.amount)}"],
                )

        engine = self.engines[instrument]
        best_record, best_score, best_reasons = None, 0, []
        for deposit in deposits:
            if deposit.synthetic:
                continue
            score, reasons = engine.score(collection, deposit)
            if self.debug:
                logger.debug(f"{collection.client_code} vs {deposit.bank}/{deposit.reference}: {score} {reasons}")
            if score > best_score:
                best_record, best_score, best_reasons = deposit, score, reasons

        confidence = min(best_score, 100)
        return MatchResult(
            collection=collection,
            confidence=confidence,
            status=status_for_confidence(confidence),
            match_type=MATCH_TYPES[instrument] if best_record is not None else "none",
            matched_record=best_record,
            reasons=best_reasons,
        )

    def _find_bounced_draft(self, collection: CollectionRecord,
                            bounced_items: Sequence[BouncedItemRecord]) -> Optional[BouncedItemRecord]:
        if not collection.draft_due_date:
            return None
        for item in bounced_items:
            if item.synthetic or not _same_code(item.client_code, collection.client_code):
                continue
            distance = days_between(item.due_date, collection.draft_due_date)
            if distance is None or distance > self.bounced_day_window:
                continue
            if abs(item.amount - collection.amount) < self.bounced_amount_tolerance:
                return item
        return None

    def reconcile(self, collections: Sequence[CollectionRecord],
                  statements: Sequence[BankStatement]) -> Result:
        """Match every collection against the full set of statements for the period."""
        deposits = [d for s in statements for d in s.deposits]
        bounced_items = [b for s in statements for b in s.bounced_items]
        results = [self.match(c, deposits, bounced_items) for c in collections]
        report = ReconciliationReport(results=results, summary=summarize_matches(results))
        logger.info(f"Reconciled {len(results)} collections against {len(deposits)} deposits: "
                    f"{report.summary['by_status']}")
        return Result(success=True, data=report)


def summarize_matches(results: Sequence[MatchResult]) -> Dict[str, object]:
    by_status = Counter(r.status for r in results)
    by_type = Counter(r.match_type for r in results)
    matched_amount = sum(r.collection.amount for r in results if r.status != "unmatched")
    total_amount = sum(r.collection.amount for r in results)
    return {
        "total": len(results),
        "by_status": {s: by_status.get(s, 0) for s in ("perfect", "partial", "unmatched")},
        "by_match_type": {t: by_type.get(t, 0) for t in ("draft", "cheque", "generic", "none")},
        "matched_amount": matched_amount,
        "unmatched_amount": total_amount - matched_amount,
        "match_rate": round(100.0 * (len(results) - by_status.get("unmatched", 0)) / len(results), 2)
        if results else 0.0,
    }
