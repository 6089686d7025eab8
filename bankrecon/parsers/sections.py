"""Section-grammar extraction of statement line items from raw text.

The scanner is a small state machine with two states, ``Idle`` and
``InSection(kind)``. A header line always moves it into the header's
section, even from inside another section. While inside a section a line is
first tried as an item; otherwise a TOTAL/SOUS-TOTAL line, a balance line or
an all-caps label followed by a colon returns the machine to ``Idle``. Any
other line (column captions, page furniture) is ignored without leaving the
section.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..models import (
    AGGREGATE_CLIENT_CODE, BankStatement, BouncedItemRecord, CheckRecord, DepositRecord,
    FacilityRecord, INVALID_INPUT, Issue, PARSE_FAILURE, Result, SECTION_NOT_FOUND, UnknownBankError,
)
from ..utils import parse_amount, parse_date
from .grammars import (
    BOUNCED, CHECKS, DEPOSITS, FACILITIES, GRAMMARS, SECTION_KINDS, BankGrammar, SectionRule,
)

logger = logging.getLogger(__name__)

TERMINATOR = re.compile(r"^[A-ZÀ-Ý][A-ZÀ-Ý\s'/.-]*:")
TOTAL_LINE = re.compile(r"\b(?:SOUS-TOTAL|TOTAL)\b", re.IGNORECASE)

TOTAL_REFERENCES = {
    DEPOSITS: "TOTAL_DEPOSITS",
    CHECKS: "TOTAL_CHECKS",
    BOUNCED: "TOTAL_BOUNCED_ITEMS",
}


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class InSection:
    kind: str


IDLE = Idle()
ScanState = Union[Idle, InSection]


@dataclass
class LineEvent:
    """What the scanner did with one line; ``state`` is the state after it."""
    line_number: int
    text: str
    event: str
    state: ScanState
    fields: Optional[Dict[str, str]] = None

    @property
    def kind(self) -> Optional[str]:
        return self.state.kind if isinstance(self.state, InSection) else None


class SectionScanner:
    """State machine over the lines of one statement."""

    def __init__(self, grammar: BankGrammar):
        self.grammar = grammar
        self.state: ScanState = IDLE

    def header_rule(self, text: str) -> Optional[SectionRule]:
        for rule in self.grammar.sections:
            if rule.header.search(text):
                return rule
        return None

    def feed(self, line_number: int, line: str) -> LineEvent:
        text = line.strip()
        if not text:
            return LineEvent(line_number, text, "blank", self.state)

        rule = self.header_rule(text)
        if rule is not None:
            self.state = InSection(rule.kind)
            return LineEvent(line_number, text, "header", self.state)

        if isinstance(self.state, Idle):
            return LineEvent(line_number, text, "idle", self.state)

        rule = self.grammar.rule_for(self.state.kind)
        match = rule.line.match(text)
        if match and not (rule.skip and rule.skip.search(text)):
            fields = {name: value for name, value in zip(rule.fields, match.groups()) if name}
            return LineEvent(line_number, text, "item", self.state, fields)

        if TOTAL_LINE.search(text) or self.grammar.is_balance_line(text) or TERMINATOR.match(text):
            self.state = IDLE
            return LineEvent(line_number, text, "exit", self.state)
        return LineEvent(line_number, text, "ignored", self.state)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = " ".join(value.split())
    return value or None


class SectionGrammarExtractor:
    """Turns raw statement text into a ``BankStatement`` using a bank grammar."""

    def __init__(self, grammars: Optional[Dict[str, BankGrammar]] = None, debug: bool = False):
        self.grammars = grammars if grammars is not None else GRAMMARS
        self.debug = debug
        self.record_builders: Dict[str, Callable[..., Any]] = {
            DEPOSITS: self._build_deposit,
            CHECKS: self._build_check,
            FACILITIES: self._build_facility,
            BOUNCED: self._build_bounced_item,
        }

    def grammar_for(self, bank: str) -> BankGrammar:
        try:
            return self.grammars[bank.upper()]
        except KeyError:
            raise UnknownBankError(f"No section grammar registered for bank {bank!r}") from None

    def scan(self, lines: Sequence[str], bank: str) -> List[LineEvent]:
        scanner = SectionScanner(self.grammar_for(bank))
        events = [scanner.feed(number, line) for number, line in enumerate(lines, start=1)]
        if self.debug:
            for event in events:
                if event.event != "blank":
                    logger.debug(f"{bank} line {event.line_number} [{event.event}] {event.text}")
        return events

    def extract(self, text: str, bank: str, processing_date: Optional[str] = None) -> Result:
        """Extract balances and line items from statement text.

        Missing sections and balances only produce warnings; the result fails
        solely when the text is empty.
        """
        if not text or not text.strip():
            return Result.failure(INVALID_INPUT, "Statement text is empty")

        grammar = self.grammar_for(bank)
        warnings: List[Issue] = []
        lines = text.splitlines()

        statement_date = self._statement_date(text, grammar, warnings, processing_date)
        opening = self._balance(grammar.opening_balance, text, "opening_balance", warnings)
        closing = self._balance(grammar.closing_balance, text, "closing_balance", warnings)

        statement = BankStatement(bank=grammar.bank, statement_date=statement_date,
                                  opening_balance=opening, closing_balance=closing)

        events = self.scan(lines, grammar.bank)
        headers_seen = {e.kind for e in events if e.event == "header"}
        for event in events:
            if event.event != "item":
                continue
            record = self.record_builders[event.kind](event.fields, grammar.bank, statement_date,
                                                      warnings, processing_date)
            if record is not None:
                statement.records(event.kind).append(record)

        for rule in grammar.sections:
            if statement.records(rule.kind):
                continue
            synthetic = self._total_only_record(rule, text, grammar.bank, statement_date, warnings)
            if synthetic is not None:
                statement.records(rule.kind).append(synthetic)
                warnings.append(Issue(SECTION_NOT_FOUND,
                                      f"No {rule.kind} line items, using section total only", rule.kind))
            elif rule.kind not in headers_seen:
                warnings.append(Issue(SECTION_NOT_FOUND, f"Section {rule.kind} not found", rule.kind))

        statement.metadata = {
            "extraction_method": "section_grammar",
            "line_count": len(lines),
            "sections_found": [k for k in SECTION_KINDS if k in headers_seen],
        }
        logger.info(f"{grammar.bank} {statement_date}: {len(statement.deposits)} deposits, "
                    f"{len(statement.checks)} checks, {len(statement.facilities)} facilities, "
                    f"{len(statement.bounced_items)} bounced items")
        return Result(success=True, data=statement, warnings=warnings)

    def _statement_date(self, text: str, grammar: BankGrammar, warnings: List[Issue],
                        processing_date: Optional[str]) -> str:
        for pattern in grammar.statement_date:
            match = pattern.search(text)
            if match:
                return parse_date(match.group("date"), warnings, processing_date, "statement_date")
        match = grammar.opening_balance.search(text)
        if match and match.group("date"):
            return parse_date(match.group("date"), warnings, processing_date, "statement_date")
        fallback = parse_date(None, None, processing_date)
        warnings.append(Issue(PARSE_FAILURE, f"Statement date not found, using {fallback}", "statement_date"))
        return fallback

    @staticmethod
    def _balance(pattern, text: str, field_name: str, warnings: List[Issue]) -> int:
        match = pattern.search(text)
        if not match:
            warnings.append(Issue(PARSE_FAILURE, f"{field_name.replace('_', ' ').capitalize()} not found, using 0",
                                  field_name))
            return 0
        return parse_amount(match.group("amount"), warnings, field_name)

    def _total_only_record(self, rule: SectionRule, text: str, bank: str, statement_date: str,
                           warnings: List[Issue]):
        if rule.total is None or rule.kind == FACILITIES:
            return None
        match = rule.total.search(text)
        if not match:
            return None
        amount = parse_amount(match.group("amount"), warnings, rule.kind)
        reference = TOTAL_REFERENCES[rule.kind]
        if rule.kind == DEPOSITS:
            return DepositRecord(bank=bank, statement_date=statement_date, deposit_date=statement_date,
                                 amount=amount, instrument_type="TOTAL", client_code=AGGREGATE_CLIENT_CODE,
                                 reference=reference, synthetic=True)
        if rule.kind == CHECKS:
            return CheckRecord(bank=bank, statement_date=statement_date, issue_date=statement_date,
                               check_number=reference, amount=amount, payee=AGGREGATE_CLIENT_CODE,
                               synthetic=True)
        return BouncedItemRecord(bank=bank, statement_date=statement_date, due_date=statement_date,
                                 client_code=AGGREGATE_CLIENT_CODE, amount=amount,
                                 description=reference, synthetic=True)

    @staticmethod
    def _build_deposit(fields, bank, statement_date, warnings, processing_date) -> DepositRecord:
        value_date = fields.get("value_date")
        return DepositRecord(
            bank=bank,
            statement_date=statement_date,
            deposit_date=parse_date(fields.get("deposit_date"), warnings, processing_date, "deposit_date"),
            amount=parse_amount(fields.get("amount"), warnings, "amount"),
            instrument_type=_clean(fields.get("instrument_type")) or "",
            value_date=parse_date(value_date, warnings, processing_date, "value_date") if value_date else None,
            client_code=_clean(fields.get("client_code")),
            reference=_clean(fields.get("reference")),
        )

    @staticmethod
    def _build_check(fields, bank, statement_date, warnings, processing_date) -> CheckRecord:
        return CheckRecord(
            bank=bank,
            statement_date=statement_date,
            issue_date=parse_date(fields.get("issue_date"), warnings, processing_date, "issue_date"),
            check_number=_clean(fields.get("check_number")) or "",
            amount=parse_amount(fields.get("amount"), warnings, "amount"),
            payee=_clean(fields.get("payee")),
        )

    @staticmethod
    def _build_facility(fields, bank, statement_date, warnings, processing_date) -> Optional[FacilityRecord]:
        limit = parse_amount(fields.get("limit_amount"), warnings, "limit_amount")
        if limit <= 0:
            return None
        used = parse_amount(fields.get("used_amount"), warnings, "used_amount")
        available = fields.get("available_amount")
        return FacilityRecord(
            bank=bank,
            statement_date=statement_date,
            facility_type=_clean(fields.get("facility_type")) or "",
            limit_amount=limit,
            used_amount=used,
            available_amount=parse_amount(available, warnings, "available_amount") if available else limit - used,
        )

    @staticmethod
    def _build_bounced_item(fields, bank, statement_date, warnings, processing_date) -> BouncedItemRecord:
        return_date = fields.get("return_date")
        return BouncedItemRecord(
            bank=bank,
            statement_date=statement_date,
            due_date=parse_date(fields.get("due_date"), warnings, processing_date, "due_date"),
            client_code=_clean(fields.get("client_code")) or "UNKNOWN",
            amount=parse_amount(fields.get("amount"), warnings, "amount"),
            return_date=parse_date(return_date, warnings, processing_date, "return_date") if return_date else None,
            description=_clean(fields.get("description")),
        )
