"""Per-bank column layouts, expressed on an 850-unit reference page width."""
import re
from typing import Dict, List

from ..models import ColumnTemplate, UnknownBankError

_DATE = re.compile(r"^\d{2}/\d{2}/\d{4}$")
_NUMBER = re.compile(r"^\d+$")
_AMOUNT = re.compile(r"^-?\d+(?:[\s.,]\d{3})*$")


def is_date(text: str) -> bool:
    return bool(_DATE.match(text.strip()))


def is_optional_date(text: str) -> bool:
    return not text.strip() or is_date(text)


def is_number_or_empty(text: str) -> bool:
    return not text.strip() or bool(_NUMBER.match(text.strip()))


def is_text(text: str) -> bool:
    return bool(text.strip())


def is_any(text: str) -> bool:
    return True


def is_amount_or_empty(text: str) -> bool:
    return not text.strip() or bool(_AMOUNT.match(text.strip()))


def _col(name, content_type, start, end, validator, field_name=None):
    return ColumnTemplate(name=name, content_type=content_type, x_zone=(start, end),
                          expected_width=end - start, validator=validator, field_name=field_name)


COLUMN_TEMPLATES: Dict[str, List[ColumnTemplate]] = {
    "BDK": [
        _col("Date", "date", 45, 115, is_date, "date"),
        _col("CH.NO", "number", 115, 195, is_number_or_empty, "check_number"),
        _col("Description", "text", 195, 375, is_text, "description"),
        _col("Vendor Provider", "text", 375, 475, is_any, "payee"),
        _col("Client", "text", 475, 575, is_any, "client_code"),
        _col("TR No/FACT.No", "text", 575, 675, is_any, "reference"),
        _col("Amount", "amount", 675, 795, is_amount_or_empty, "amount"),
    ],
    "ATB": [
        _col("Date Opération", "date", 40, 110, is_date, "date"),
        _col("Date Valeur", "date", 110, 180, is_optional_date, "value_date"),
        _col("Nature", "text", 180, 340, is_text, "description"),
        _col("Référence", "text", 340, 460, is_any, "reference"),
        _col("Client", "text", 460, 620, is_any, "client_code"),
        _col("Montant", "amount", 620, 800, is_amount_or_empty, "amount"),
    ],
    "BICIS": [
        _col("Date", "date", 40, 115, is_date, "date"),
        _col("N° Pièce", "number", 115, 200, is_number_or_empty, "check_number"),
        _col("Libellé", "text", 200, 420, is_text, "description"),
        _col("Client", "text", 420, 560, is_any, "client_code"),
        _col("Référence", "text", 560, 660, is_any, "reference"),
        _col("Montant", "amount", 660, 800, is_amount_or_empty, "amount"),
    ],
    "ORA": [
        _col("Date", "date", 40, 110, is_date, "date"),
        _col("Value Date", "date", 110, 180, is_optional_date, "value_date"),
        _col("Client", "text", 180, 300, is_any, "client_code"),
        _col("Reference", "text", 300, 420, is_any, "reference"),
        _col("Description", "text", 420, 640, is_text, "description"),
        _col("Amount", "amount", 640, 800, is_amount_or_empty, "amount"),
    ],
    "SGBS": [
        _col("Date", "date", 40, 115, is_date, "date"),
        _col("Numéro", "number", 115, 205, is_number_or_empty, "check_number"),
        _col("Libellé", "text", 205, 450, is_text, "description"),
        _col("Bénéficiaire", "text", 450, 630, is_any, "payee"),
        _col("Montant", "amount", 630, 800, is_amount_or_empty, "amount"),
    ],
    "BIS": [
        _col("Date", "date", 45, 115, is_date, "date"),
        _col("Client", "text", 115, 235, is_any, "client_code"),
        _col("Reference", "text", 235, 355, is_any, "reference"),
        _col("Description", "text", 355, 640, is_text, "description"),
        _col("Amount", "amount", 640, 800, is_amount_or_empty, "amount"),
    ],
}


def templates_for(bank: str) -> List[ColumnTemplate]:
    try:
        return COLUMN_TEMPLATES[bank.upper()]
    except KeyError:
        raise UnknownBankError(f"No column template registered for bank {bank!r}") from None
