"""Data model shared by the extraction, validation and reconciliation stages.

Records are plain dataclasses. Amounts are integers in the currency's minor
unit and dates are ISO ``YYYY-MM-DD`` strings so that every record can be
exported to JSON, Excel or the statement store without conversion.
"""
import hashlib
import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

# Issue codes
DETECTION_FAILURE = "DETECTION_FAILURE"
SECTION_NOT_FOUND = "SECTION_NOT_FOUND"
PARSE_FAILURE = "PARSE_FAILURE"
PAGE_TIMEOUT = "PAGE_TIMEOUT"
VALIDATION_MISMATCH = "VALIDATION_MISMATCH"
INVALID_INPUT = "INVALID_INPUT"

# Instrument types carried by collection records
DRAFT = "EFFET"
CHEQUE = "CHEQUE"
GENERIC = "GENERIC"

# Match status thresholds
PERFECT_THRESHOLD = 80
PARTIAL_THRESHOLD = 50

PLACEHOLDER_CLIENT_CODES = {"", "UNKNOWN", "N/A", "NA", "-"}
AGGREGATE_CLIENT_CODE = "VARIOUS"


class BankReconError(Exception):
    """Base class for configuration and programming faults."""


class InvalidBoundaryError(BankReconError, ValueError):
    """Column boundaries are inverted or fall outside the page."""


class UnknownBankError(BankReconError, LookupError):
    """No grammar or column template is registered for a bank."""


class DocumentSourceError(BankReconError):
    """The document backend could not open or read a document."""


@dataclass
class Issue:
    code: str
    message: str
    field: Optional[str] = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        data = {"code": self.code, "message": self.message}
        if self.field:
            data["field"] = self.field
        return data


@dataclass
class Result:
    """Outcome of a public operation: payload plus errors and warnings."""
    success: bool = True
    data: Any = None
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)

    def warn(self, code: str, message: str, field_name: Optional[str] = None) -> None:
        self.warnings.append(Issue(code, message, field_name))

    def fail(self, code: str, message: str) -> "Result":
        self.success = False
        self.errors.append(Issue(code, message))
        return self

    def extend(self, other: "Result") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self) -> Dict[str, Any]:
        data = self.data
        if hasattr(data, "to_dict"):
            data = data.to_dict()
        return {
            "success": self.success,
            "data": data,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }

    @classmethod
    def failure(cls, code: str, message: str, data: Any = None) -> "Result":
        return cls(success=False, data=data, errors=[Issue(code, message)])


@dataclass
class TextItem:
    """One positioned run of text on a page."""
    text: str
    x: float
    y: float
    font_size: float = 0.0
    width: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width


@dataclass
class Column:
    x_start: float
    x_end: float
    index: int
    items: List[TextItem] = field(default_factory=list)

    def __post_init__(self):
        if not self.x_start < self.x_end:
            raise InvalidBoundaryError(
                f"Column {self.index}: start {self.x_start} must be lower than end {self.x_end}")

    @property
    def center(self) -> float:
        return (self.x_start + self.x_end) / 2.0

    @property
    def width(self) -> float:
        return self.x_end - self.x_start


@dataclass(frozen=True)
class ColumnTemplate:
    """Expected position and content of one column of a bank's layout."""
    name: str
    content_type: str
    x_zone: Tuple[float, float]
    expected_width: float
    validator: Callable[[str], bool]
    field_name: Optional[str] = None

    def validate(self, text: str) -> bool:
        return bool(self.validator(text))


@dataclass
class DepositRecord:
    bank: str
    statement_date: str
    deposit_date: str
    amount: int
    instrument_type: str = ""
    value_date: Optional[str] = None
    client_code: Optional[str] = None
    reference: Optional[str] = None
    synthetic: bool = False


@dataclass
class CheckRecord:
    bank: str
    statement_date: str
    issue_date: str
    check_number: str
    amount: int
    payee: Optional[str] = None
    synthetic: bool = False


@dataclass
class FacilityRecord:
    bank: str
    statement_date: str
    facility_type: str
    limit_amount: int
    used_amount: int
    available_amount: int


@dataclass
class BouncedItemRecord:
    bank: str
    statement_date: str
    due_date: str
    client_code: str
    amount: int
    return_date: Optional[str] = None
    description: Optional[str] = None
    synthetic: bool = False


RECORD_KINDS = ("deposits", "checks", "facilities", "bounced_items")


@dataclass
class BankStatement:
    """Structured form of one bank's statement for one date."""
    bank: str
    statement_date: str
    opening_balance: int = 0
    closing_balance: int = 0
    deposits: List[DepositRecord] = field(default_factory=list)
    checks: List[CheckRecord] = field(default_factory=list)
    facilities: List[FacilityRecord] = field(default_factory=list)
    bounced_items: List[BouncedItemRecord] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_deposits(self) -> int:
        return sum(d.amount for d in self.deposits)

    @property
    def total_checks(self) -> int:
        return sum(c.amount for c in self.checks)

    @property
    def total_bounced(self) -> int:
        return sum(b.amount for b in self.bounced_items)

    def records(self, kind: str) -> List[Any]:
        return getattr(self, kind)

    def content_dict(self) -> Dict[str, Any]:
        """Statement content without extraction metadata."""
        return {
            "bank": self.bank,
            "statement_date": self.statement_date,
            "opening_balance": self.opening_balance,
            "closing_balance": self.closing_balance,
            "deposits": [asdict(d) for d in self.deposits],
            "checks": [asdict(c) for c in self.checks],
            "facilities": [asdict(f) for f in self.facilities],
            "bounced_items": [asdict(b) for b in self.bounced_items],
        }

    @property
    def checksum(self) -> str:
        canonical = json.dumps(self.content_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        data = self.content_dict()
        data["checksum"] = self.checksum
        data["metadata"] = self.metadata
        return data


@dataclass
class CollectionRecord:
    """Expected collection from the external ledger."""
    client_code: str
    amount: int
    statement_date: str
    instrument_type: str = GENERIC
    bank_name: Optional[str] = None
    draft_due_date: Optional[str] = None
    check_number: Optional[str] = None
    reference: Optional[str] = None


def status_for_confidence(confidence: float) -> str:
    if confidence >= PERFECT_THRESHOLD:
        return "perfect"
    if confidence >= PARTIAL_THRESHOLD:
        return "partial"
    return "unmatched"


@dataclass
class MatchResult:
    collection: CollectionRecord
    confidence: int
    status: str
    match_type: str
    matched_record: Optional[DepositRecord] = None
    matched_bounced_item: Optional[BouncedItemRecord] = None
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": asdict(self.collection),
            "matched_record": asdict(self.matched_record) if self.matched_record else None,
            "matched_bounced_item": asdict(self.matched_bounced_item) if self.matched_bounced_item else None,
            "confidence": self.confidence,
            "status": self.status,
            "match_type": self.match_type,
            "reasons": list(self.reasons),
        }


@dataclass
class ClientRiskProfile:
    client_code: str
    total_exposure: int
    bank_count: int
    banks: List[str]
    risk_tier: str
    item_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Alert:
    type: str
    title: str
    description: str
    action: str
    trigger: str
    value: Optional[float] = None
    threshold: Optional[float] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "action": self.action,
            "trigger": self.trigger,
            "value": self.value,
            "threshold": self.threshold,
            "createdAt": self.created_at,
        }
