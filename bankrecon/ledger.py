"""Loading of the expected-collections ledger.

Ledger headers vary between exports, so columns are mapped with fuzzy
matching. The instrument is read from the "No.Chq/Bd" column when no
explicit type is given: a date there is a draft due date, a number is a
cheque number.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from .matching import normalize_instrument
from .models import CHEQUE, CollectionRecord, DRAFT, GENERIC, Issue, PARSE_FAILURE, Result
from .utils import fuzzy_header_map, parse_amount, to_iso_date

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    'client_code': ['Client Code', 'Code Client', 'Client', 'Customer Code'],
    'amount': ['Amount', 'Montant', 'Collection Amount', 'Montant Encaissement'],
    'bank_name': ['Bank', 'Banque', 'Bank Name'],
    'statement_date': ['Date', 'Collection Date', 'Date Encaissement', 'Report Date', 'Date Rapport'],
    'instrument_ref': ['No.Chq /Bd', 'No Chq Bd', 'N° Chq/Bd', 'Cheque Bordereau'],
    'instrument_type': ['Type', 'Collection Type', 'Type Reglement', 'Instrument'],
    'draft_due_date': ['Echeance', 'Date Echeance', 'Due Date'],
    'reference': ['Reference', 'Ref', 'Facture', 'Invoice'],
    'status': ['Status', 'Statut'],
}

RECONCILED_STATUSES = {"RECONCILED", "RAPPROCHE", "RAPPROCHÉ", "MATCHED"}
_DIGITS = re.compile(r"^\d+$")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float):
        if value != value:
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def infer_instrument(ref_value: Any) -> Dict[str, Optional[str]]:
    """Instrument type from the No.Chq/Bd value: date = draft, number = cheque."""
    text = _text(ref_value)
    if text is None:
        return {"instrument_type": GENERIC, "draft_due_date": None, "check_number": None}
    if not _DIGITS.match(text):
        iso = to_iso_date(ref_value)
        if iso is not None:
            return {"instrument_type": DRAFT, "draft_due_date": iso, "check_number": None}
        return {"instrument_type": GENERIC, "draft_due_date": None, "check_number": None}
    return {"instrument_type": CHEQUE, "draft_due_date": None, "check_number": text}


def load_collections(source: Union[str, pd.DataFrame], threshold: int = 80) -> Result:
    """Read pending collection records from a CSV/Excel file or a DataFrame."""
    if isinstance(source, pd.DataFrame):
        df = source
    elif str(source).lower().endswith(".csv"):
        df = pd.read_csv(source, dtype=object)
    else:
        df = pd.read_excel(source, dtype=object)

    mapping = fuzzy_header_map(list(df.columns), COLUMN_ALIASES, threshold)
    missing = [f for f in ('client_code', 'amount') if f not in mapping]
    if missing:
        return Result.failure(PARSE_FAILURE, f"Ledger is missing required columns: {', '.join(missing)}")

    records: List[CollectionRecord] = []
    warnings: List[Issue] = []
    skipped = 0
    for row in df.itertuples(index=False, name=None):
        def cell(field_name):
            idx = mapping.get(field_name)
            return row[idx] if idx is not None else None

        status = (_text(cell('status')) or "").upper()
        if status in RECONCILED_STATUSES:
            skipped += 1
            continue
        client_code = _text(cell('client_code'))
        if client_code is None:
            continue

        instrument = infer_instrument(cell('instrument_ref'))
        explicit_type = _text(cell('instrument_type'))
        if explicit_type:
            instrument["instrument_type"] = normalize_instrument(explicit_type)
        due_date = to_iso_date(cell('draft_due_date'))
        if due_date:
            instrument["draft_due_date"] = due_date

        records.append(CollectionRecord(
            client_code=client_code,
            amount=parse_amount(cell('amount'), warnings, 'amount'),
            statement_date=to_iso_date(cell('statement_date')) or "",
            instrument_type=instrument["instrument_type"],
            bank_name=_text(cell('bank_name')),
            draft_due_date=instrument["draft_due_date"],
            check_number=instrument["check_number"],
            reference=_text(cell('reference')),
        ))

    logger.info(f"Loaded {len(records)} pending collections ({skipped} already reconciled)")
    return Result(success=True, data=records, warnings=warnings)
