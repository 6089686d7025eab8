import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dateutil import parser as dateparser
from fuzzywuzzy import fuzz

from .models import Issue, PARSE_FAILURE

# Largest integer exactly representable by a double; amounts above it are clamped.
MAX_SAFE_AMOUNT = 2 ** 53 - 1

DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y-%m-%d", "%d/%m/%y", "%d %b %Y", "%d %B %Y")

_CURRENCY_TOKENS = re.compile(r"(?i)\b(?:FCFA|F\s?CFA|XOF|CFA|EUR)\b|[€$]")
_SPACES = re.compile(r"[\s\u00a0\u202f']")
_DECIMAL_TAIL = re.compile(r"[.,](\d{1,2})$")


def _note(warnings: Optional[List[Issue]], message: str, field_name: Optional[str] = None) -> None:
    if warnings is not None:
        warnings.append(Issue(PARSE_FAILURE, message, field_name))


def parse_amount(raw_value: Any, warnings: Optional[List[Issue]] = None,
                 field_name: Optional[str] = None) -> int:
    """Parse a locale-formatted amount into an integer.

    Accepts space, non-breaking space, dot or comma thousand separators
    ("1 250 000", "1.250.000", "1,250,000"), an optional two-digit decimal
    tail, and the usual negative markers (leading '-', trailing '-',
    parentheses, DR suffix). Unparsable input yields 0 and a warning.
    """
    if raw_value is None:
        _note(warnings, "Missing amount, defaulting to 0", field_name)
        return 0
    if isinstance(raw_value, bool):
        _note(warnings, f"Unexpected amount value {raw_value!r}, defaulting to 0", field_name)
        return 0
    if isinstance(raw_value, int):
        return _clamp(raw_value, warnings, field_name)
    if isinstance(raw_value, float):
        if raw_value != raw_value:  # NaN
            _note(warnings, "Missing amount, defaulting to 0", field_name)
            return 0
        return _clamp(int(round(raw_value)), warnings, field_name)

    s = _CURRENCY_TOKENS.sub("", str(raw_value)).strip()
    if not s or s.lower() in {"nan", "none", "-"}:
        _note(warnings, f"Unparsable amount {raw_value!r}, defaulting to 0", field_name)
        return 0
    cleaned = _SPACES.sub("", s)

    is_negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
        is_negative = True
    elif cleaned.endswith("-"):
        cleaned = cleaned[:-1]
        is_negative = True
    elif cleaned.upper().endswith("DR"):
        cleaned = cleaned[:-2]
        is_negative = True
    elif cleaned.upper().endswith("CR"):
        cleaned = cleaned[:-2]
    if cleaned.startswith("-"):
        cleaned = cleaned[1:]
        is_negative = True

    decimals = ""
    match = _DECIMAL_TAIL.search(cleaned)
    if match:
        decimals = match.group(1)
        cleaned = cleaned[:match.start()]
    digits = cleaned.replace(".", "").replace(",", "")
    if not digits.isdigit():
        _note(warnings, f"Unparsable amount {raw_value!r}, defaulting to 0", field_name)
        return 0

    value = int(digits)
    if decimals and int(decimals.ljust(2, "0")) >= 50:
        value += 1
    value = _clamp(value, warnings, field_name)
    return -value if is_negative else value


def _clamp(value: int, warnings: Optional[List[Issue]], field_name: Optional[str]) -> int:
    if abs(value) > MAX_SAFE_AMOUNT:
        _note(warnings, f"Amount {value} exceeds the safe integer bound, clamped", field_name)
        return MAX_SAFE_AMOUNT if value > 0 else -MAX_SAFE_AMOUNT
    return value


def to_iso_date(raw_value: Any) -> Optional[str]:
    """Try multiple date formats; return YYYY-MM-DD or None."""
    if raw_value is None:
        return None
    if isinstance(raw_value, datetime):
        return raw_value.date().isoformat()
    if isinstance(raw_value, date):
        return raw_value.isoformat()
    s = str(raw_value).strip()
    if not s or s.lower() in {"nan", "nat", "none"}:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    # Last attempt: free-form day-first parsing, only for strings that look like dates
    if len(s) >= 6 and re.search(r"\d{1,2}\D+\w+\D+\d{2,4}", s):
        try:
            return dateparser.parse(s, dayfirst=True).date().isoformat()
        except (ValueError, OverflowError):
            return None
    return None


def parse_date(raw_value: Any, warnings: Optional[List[Issue]] = None,
               processing_date: Optional[str] = None, field_name: Optional[str] = None) -> str:
    """Convert a statement date to ISO form, falling back to the processing date."""
    iso = to_iso_date(raw_value)
    if iso is not None:
        return iso
    fallback = processing_date or date.today().isoformat()
    _note(warnings, f"Unparsable date {raw_value!r}, using processing date {fallback}", field_name)
    return fallback


def days_between(first: Optional[str], second: Optional[str]) -> Optional[int]:
    """Absolute day distance between two ISO dates, None when either is missing."""
    a, b = to_iso_date(first), to_iso_date(second)
    if a is None or b is None:
        return None
    return abs((date.fromisoformat(a) - date.fromisoformat(b)).days)


def format_amount(value: Optional[int]) -> str:
    if value is None:
        return ""
    return f"{value:,}".replace(",", " ")


def normalize_label(text: Any) -> str:
    """Lowercase a header cell and strip punctuation for fuzzy comparison."""
    s = str(text or "").lower()
    s = s.translate(str.maketrans("éèêëàâäîïôöûüç", "eeeeaaaiioouuc"))
    return re.sub(r"[^a-z0-9]+", " ", s).strip()


def fuzzy_header_map(headers: Sequence[Any], aliases: Dict[str, Iterable[str]],
                     threshold: int = 80) -> Dict[str, int]:
    """Map canonical field names to header column indexes.

    Every (field, column) pair is scored with ``fuzz.token_sort_ratio``
    against the field's aliases; pairs are then assigned greedily from the
    best score down so that each column serves at most one field.
    """
    candidates = []
    for col_idx, header in enumerate(headers):
        label = normalize_label(header)
        if not label:
            continue
        for field_name, names in aliases.items():
            score = max(fuzz.token_sort_ratio(label, normalize_label(n)) for n in names)
            if score >= threshold:
                candidates.append((score, col_idx, field_name))

    mapping: Dict[str, int] = {}
    used_columns = set()
    for score, col_idx, field_name in sorted(candidates, key=lambda c: (-c[0], c[1])):
        if field_name in mapping or col_idx in used_columns:
            continue
        mapping[field_name] = col_idx
        used_columns.add(col_idx)
    return mapping
