"""Statement extraction from spreadsheet rows.

Rows are flattened to lines for the bank grammar. Balances and the
statement date that the grammar cannot see (for example a label and its
value in separate cells) are recovered from labelled cells with fuzzy
header matching.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from ..models import Result
from ..utils import fuzzy_header_map, parse_amount, to_iso_date
from .sections import SectionGrammarExtractor

logger = logging.getLogger(__name__)

LABEL_ALIASES = {
    'opening_balance': ['Solde Ouverture', "Solde d'ouverture", 'Solde Initial', 'Solde Début',
                        'Opening Balance', 'Balance Opening'],
    'closing_balance': ['Solde Clôture', 'Solde Cloture Comptable', 'Solde Final', 'Solde Fin',
                        'Solde Fermeture', 'Closing Balance', 'Balance Closing'],
    'statement_date': ['Date Rapport', 'Date Position', 'Report Date', 'Statement Date',
                       "Date d'arrêté", 'Position Date'],
}


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, float):
        if value != value:
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def rows_to_lines(rows: Sequence[Sequence[Any]]) -> List[str]:
    lines = []
    for row in rows:
        parts = [cell_text(c) for c in row]
        line = " ".join(p for p in parts if p)
        if line:
            lines.append(line)
    return lines


class TabularStatementParser:

    def __init__(self, extractor: SectionGrammarExtractor, similarity_threshold: int = 85,
                 debug: bool = False):
        self.extractor = extractor
        self.similarity_threshold = similarity_threshold
        self.debug = debug

    def parse(self, rows: Sequence[Sequence[Any]], bank: str,
              processing_date: Optional[str] = None) -> Result:
        result = self.extractor.extract("\n".join(rows_to_lines(rows)), bank, processing_date)
        if not result.success:
            return result
        statement = result.data

        missing = {w.field for w in result.warnings if w.field in LABEL_ALIASES}
        if missing:
            values = self.labelled_values(rows)
            for field_name in sorted(missing):
                raw = values.get(field_name)
                if raw is None:
                    continue
                if field_name == 'statement_date':
                    iso = to_iso_date(raw)
                    if iso is None:
                        continue
                    statement.statement_date = iso
                    for kind in ('deposits', 'checks', 'facilities', 'bounced_items'):
                        for record in statement.records(kind):
                            record.statement_date = iso
                else:
                    setattr(statement, field_name, parse_amount(raw, result.warnings, field_name))
                result.warnings = [w for w in result.warnings if w.field != field_name]
                logger.info(f"{bank}: recovered {field_name} from labelled cells")

        statement.metadata["extraction_method"] = "tabular"
        return result

    def labelled_values(self, rows: Sequence[Sequence[Any]]) -> Dict[str, Any]:
        """Values next to (same row) or below (next row) a recognised label."""
        values: Dict[str, Any] = {}
        for row_idx, row in enumerate(rows):
            cells = list(row)
            filled = [i for i, c in enumerate(cells) if cell_text(c)]
            if not filled:
                continue

            label_idx = filled[0]
            mapping = fuzzy_header_map([cells[label_idx]], LABEL_ALIASES, self.similarity_threshold)
            # a second label on the row means a header row, with values below
            if mapping and len(filled) > 1 and not fuzzy_header_map(
                    [cells[filled[1]]], LABEL_ALIASES, self.similarity_threshold):
                field_name = next(iter(mapping))
                values.setdefault(field_name, cells[filled[1]])
                continue

            mapping = fuzzy_header_map(cells, LABEL_ALIASES, self.similarity_threshold)
            if mapping and row_idx + 1 < len(rows):
                below = list(rows[row_idx + 1])
                for field_name, col_idx in mapping.items():
                    if col_idx < len(below) and cell_text(below[col_idx]):
                        values.setdefault(field_name, below[col_idx])
        if self.debug:
            logger.debug(f"Labelled values: {values}")
        return values
