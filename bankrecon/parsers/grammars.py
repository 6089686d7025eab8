"""Declarative section grammars for the supported banks.

Each bank maps to a ``BankGrammar``: balance and statement-date patterns
plus one ``SectionRule`` per record kind. A rule's ``fields`` tuple names
the capture groups of its line pattern in order; ``None`` marks a group
that is matched but not kept. Header patterns are anchored at the start of
the line so that an item line mentioning a section keyword (for example
"REGUL IMPAYE" in a deposit) never switches sections.

Capture layouts:

    BDK    deposits  date, sequence, type, client, reference?, amount
           checks    date, number, payee?, amount
           bounced   return date, due date, client, description?, amount
    ATB    deposits  date, value date, type, reference, client, amount
           bounced   due date, return date, client, description?, amount
    BICIS  deposits  date, reference, client, type, amount
           bounced   due date, client, description?, amount
    ORA    deposits  date, value date, client, reference, type?, amount
           bounced   return date, due date, client, description?, amount
    SGBS   deposits  date, reference, type, amount
           bounced   due date, client, description?, amount
    BIS    deposits  date, client, reference, type, amount
           bounced   return date, due date, client, description?, amount

Checks use date, number, payee?, amount and facilities use type, limit,
used, available for every bank.
"""
import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Tuple

from ..models import UnknownBankError

DEPOSITS = "deposits"
CHECKS = "checks"
FACILITIES = "facilities"
BOUNCED = "bounced_items"
SECTION_KINDS = (DEPOSITS, CHECKS, FACILITIES, BOUNCED)

DATE = r"(\d{2}/\d{2}/\d{4})"
AMOUNT_BODY = r"\d{1,3}(?:[ \u00a0.,]\d{3})+|\d+"
AMOUNT = rf"({AMOUNT_BODY})"
NAMED_AMOUNT = rf"(?P<amount>-?\s?(?:{AMOUNT_BODY}))"
NAMED_DATE = r"(?P<date>\d{2}/\d{2}/\d{4})"
OPTIONAL_TEXT = r"(?:\s+(.*?))??"

_FLAGS = re.IGNORECASE | re.MULTILINE


@dataclass(frozen=True)
class SectionRule:
    kind: str
    header: Pattern
    line: Pattern
    fields: Tuple[Optional[str], ...]
    total: Optional[Pattern] = None
    skip: Optional[Pattern] = None


@dataclass(frozen=True)
class BankGrammar:
    bank: str
    opening_balance: Pattern
    closing_balance: Pattern
    statement_date: Tuple[Pattern, ...]
    sections: Tuple[SectionRule, ...]

    def rule_for(self, kind: str) -> Optional[SectionRule]:
        for rule in self.sections:
            if rule.kind == kind:
                return rule
        return None

    def is_balance_line(self, line: str) -> bool:
        return bool(self.opening_balance.search(line) or self.closing_balance.search(line))


def _rx(pattern: str) -> Pattern:
    return re.compile(pattern, _FLAGS)


def _section(kind, label, line, fields, prefix="", header_end=r"\b", skip=None) -> SectionRule:
    return SectionRule(
        kind=kind,
        header=_rx(rf"^\s*{prefix}{label}{header_end}"),
        line=_rx(line),
        fields=fields,
        total=_rx(rf"^\s*(?:SOUS-)?TOTAL\s+{label}\s*:?\s*{NAMED_AMOUNT}\s*$"),
        skip=_rx(skip) if skip else None,
    )


def _opening(label: str) -> Pattern:
    return _rx(rf"^\s*{label}\s*:?\s*(?:{NAMED_DATE}\s+)?{NAMED_AMOUNT}\s*$")


def _closing(label: str) -> Pattern:
    return _rx(rf"^\s*{label}\s*:?\s*{NAMED_AMOUNT}\s*$")


CHECK_LINE = rf"^{DATE}\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$"
CHECK_FIELDS = ("issue_date", "check_number", "payee", "amount")
FACILITY_LINE = rf"^([A-Za-zÀ-ÿ][A-Za-zÀ-ÿ .'/()-]*?)\s+{AMOUNT}\s+{AMOUNT}\s+{AMOUNT}\s*$"
FACILITY_FIELDS = ("facility_type", "limit_amount", "used_amount", "available_amount")
FACILITY_SKIP = r"^\s*(?:CLIENT|TOTAL|LIMIT|TYPE)\b"


def _facilities(label: str) -> SectionRule:
    return _section(FACILITIES, label, FACILITY_LINE, FACILITY_FIELDS, skip=FACILITY_SKIP)


BDK = BankGrammar(
    bank="BDK",
    opening_balance=_opening(r"OPENING\s+BALANCE"),
    closing_balance=_closing(r"CLOSING\s+BALANCE\s+as\s+per\s+Book\s*:\s*(?:C\s*=\s*\(A\s*-\s*B\))?"),
    statement_date=(
        _rx(rf"BANK\s+POSITION\s+(?:AS\s+(?:AT|OF)|AU)\s*:?\s*{NAMED_DATE}"),
        _rx(rf"^\s*DATE\s*:\s*{NAMED_DATE}"),
    ),
    sections=(
        _section(
            DEPOSITS, r"DEPOSITS?\s+NOT\s+YET\s+CLEARED",
            rf"^{DATE}\s+(\d+)\s+(REGUL\s+IMPAYE|REGLEMENT\s+FACTURE|TR\s+No/FACT\.No|EFFET|CHEQUE|VERSEMENT|VIREMENT)"
            rf"\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
            ("deposit_date", None, "instrument_type", "client_code", "reference", "amount"),
            prefix=r"(?:ADD\s*:?\s*)?",
        ),
        _section(CHECKS, r"CHECKS?\s+NOT\s+YET\s+CLEARED",
                 rf"^{DATE}\s+(\d+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$", CHECK_FIELDS,
                 prefix=r"(?:LESS\s*:?\s*)?"),
        _facilities(r"BANK\s+FACILIT(?:Y|IES)"),
        _section(BOUNCED, r"IMPAYES?",
                 rf"^{DATE}\s+{DATE}\s+IMPAYE\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
                 ("return_date", "due_date", "client_code", "description", "amount"),
                 header_end=r"\s*:?\s*$"),
    ),
)

ATB = BankGrammar(
    bank="ATB",
    opening_balance=_opening(r"SOLDE\s+(?:D'?\s*)?OUVERTURE"),
    closing_balance=_closing(r"SOLDE\s+CLOTURE\s+COMPTABLE\s*:"),
    statement_date=(_rx(rf"(?:ARRETE|SITUATION)\s+AU\s*:?\s*{NAMED_DATE}"),),
    sections=(
        _section(
            DEPOSITS, r"DEPOTS\s+NON\s+CREDITES",
            rf"^{DATE}\s+{DATE}\s+(VERSEMENT|REMISE\s+CHEQUE|REMISE\s+EFFET|EFFET|CHEQUE|VIREMENT)"
            rf"\s+(\S+)\s+(\S+)\s+{AMOUNT}\s*$",
            ("deposit_date", "value_date", "instrument_type", "reference", "client_code", "amount"),
        ),
        _section(CHECKS, r"CHEQUES\s+EMIS\s+NON\s+DEBITES", CHECK_LINE, CHECK_FIELDS),
        _facilities(r"FACILITES\s+BANCAIRES"),
        _section(BOUNCED, r"IMPAYES\s+NON\s+REGULARISES",
                 rf"^{DATE}\s+{DATE}\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
                 ("due_date", "return_date", "client_code", "description", "amount")),
    ),
)

BICIS = BankGrammar(
    bank="BICIS",
    opening_balance=_opening(r"SOLDE\s+INITIAL"),
    closing_balance=_closing(r"SOLDE\s+FINAL\s+COMPTABLE\s*:"),
    statement_date=(_rx(rf"(?:POSITION|SITUATION)\s+(?:DU|AU)\s*:?\s*{NAMED_DATE}"),),
    sections=(
        _section(DEPOSITS, r"DEPOTS\s+EN\s+ATTENTE",
                 rf"^{DATE}\s+(\S+)\s+(\S+)\s+(.*?)\s+{AMOUNT}\s*$",
                 ("deposit_date", "reference", "client_code", "instrument_type", "amount")),
        _section(CHECKS, r"CHEQUES\s+EN\s+CIRCULATION", CHECK_LINE, CHECK_FIELDS),
        _facilities(r"LIGNES\s+DE\s+CREDIT"),
        _section(BOUNCED, r"INCIDENTS\s+DE\s+PAIEMENT",
                 rf"^{DATE}\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
                 ("due_date", "client_code", "description", "amount")),
    ),
)

ORA = BankGrammar(
    bank="ORA",
    opening_balance=_opening(r"BALANCE\s+OPENING"),
    closing_balance=_closing(r"BALANCE\s+CLOSING\s+BOOK\s*:"),
    statement_date=(_rx(rf"(?:REPORT|POSITION)\s+DATE\s*:?\s*{NAMED_DATE}"),),
    sections=(
        _section(DEPOSITS, r"DEPOSITS\s+NOT\s+CLEARED",
                 rf"^{DATE}\s+{DATE}\s+(\S+)\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
                 ("deposit_date", "value_date", "client_code", "reference", "instrument_type", "amount")),
        _section(CHECKS, r"CHECKS\s+NOT\s+CLEARED", CHECK_LINE, CHECK_FIELDS),
        _facilities(r"CREDIT\s+FACILITIES"),
        _section(BOUNCED, r"UNPAID\s+ITEMS",
                 rf"^{DATE}\s+{DATE}\s+UNPAID\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
                 ("return_date", "due_date", "client_code", "description", "amount")),
    ),
)

SGBS = BankGrammar(
    bank="SGBS",
    opening_balance=_opening(r"SOLDE\s+OUVERTURE"),
    closing_balance=_closing(r"SOLDE\s+FERMETURE\s+LIVRE\s*:"),
    statement_date=(_rx(rf"DATE\s+POSITION\s*:?\s*{NAMED_DATE}"),),
    sections=(
        _section(DEPOSITS, r"DEPOTS\s+NON\s+CREDITES",
                 rf"^{DATE}\s+(\d+)\s+(.*?)\s+{AMOUNT}\s*$",
                 ("deposit_date", "reference", "instrument_type", "amount")),
        _section(CHECKS, r"CHEQUES\s+NON\s+DEBITES", CHECK_LINE, CHECK_FIELDS),
        _facilities(r"FACILITES\s+BANCAIRES"),
        _section(BOUNCED, r"IMPAYES\s+NON\s+REGULARISES",
                 rf"^{DATE}\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
                 ("due_date", "client_code", "description", "amount")),
    ),
)

BIS = BankGrammar(
    bank="BIS",
    opening_balance=_opening(r"OPENING\s+BALANCE"),
    closing_balance=_closing(r"CLOSING\s+BALANCE\s+BOOK\s*:"),
    statement_date=(_rx(rf"(?:POSITION|STATEMENT)\s+(?:AS\s+AT|DATE)\s*:?\s*{NAMED_DATE}"),),
    sections=(
        _section(DEPOSITS, r"DEPOSITS\s+NOT\s+CLEARED",
                 rf"^{DATE}\s+(\S+)\s+(\S+)\s+(.*?)\s+{AMOUNT}\s*$",
                 ("deposit_date", "client_code", "reference", "instrument_type", "amount")),
        _section(CHECKS, r"CHECKS\s+NOT\s+CLEARED", CHECK_LINE, CHECK_FIELDS),
        _facilities(r"FINANCING\s+FACILITIES"),
        _section(BOUNCED, r"DEFAULTED\s+ITEMS",
                 rf"^{DATE}\s+{DATE}\s+DEFAULT\s+(\S+){OPTIONAL_TEXT}\s+{AMOUNT}\s*$",
                 ("return_date", "due_date", "client_code", "description", "amount")),
    ),
)

GRAMMARS: Dict[str, BankGrammar] = {g.bank: g for g in (BDK, ATB, BICIS, ORA, SGBS, BIS)}
SUPPORTED_BANKS = tuple(GRAMMARS)


def grammar_for(bank: str) -> BankGrammar:
    try:
        return GRAMMARS[bank.upper()]
    except KeyError:
        raise UnknownBankError(f"No section grammar registered for bank {bank!r}") from None
