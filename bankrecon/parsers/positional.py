"""Statement extraction from positioned page text.

Pages are indexed into the bank's columns, calibrated against the bank's
template, and rebuilt into lines for the section grammar. Deposit and check
rows are then re-read from their column cells, which survives descriptions
that break the line patterns.
"""
import logging
from typing import Dict, List, Optional, Sequence

from ..documents import PageContent
from ..models import CheckRecord, DepositRecord, Issue, Result, SECTION_NOT_FOUND
from ..positional import ColumnCalibrationEngine, TextPositionIndexer, templates_for
from ..positional.templates import is_amount_or_empty, is_date
from ..utils import parse_amount, parse_date
from .grammars import CHECKS, DEPOSITS
from .sections import SectionGrammarExtractor

logger = logging.getLogger(__name__)


class PositionalStatementParser:

    def __init__(self, extractor: SectionGrammarExtractor,
                 indexer: Optional[TextPositionIndexer] = None,
                 calibration: Optional[ColumnCalibrationEngine] = None,
                 debug: bool = False):
        self.extractor = extractor
        self.indexer = indexer or TextPositionIndexer(debug=debug)
        self.calibration = calibration or ColumnCalibrationEngine(debug=debug)
        self.debug = debug

    def parse(self, pages: Sequence[PageContent], bank: str,
              processing_date: Optional[str] = None) -> Result:
        templates = templates_for(bank)
        lines: List[str] = []
        row_cells: List[Dict[str, str]] = []
        reports = []

        for page in pages:
            if not page.items:
                continue
            boundaries = self.indexer.detect_boundaries(page.items, page.page_width, len(templates))
            method = "detected"
            if boundaries is None:
                boundaries = self.calibration.scaled_boundaries(templates, page.page_width)
                method = "configured"
            columns = self.indexer.assign(page.items, boundaries, page.page_width)
            report = self.calibration.calibrate(columns, templates, page.page_width, bank)
            report_dict = report.to_dict()
            report_dict.update(page_number=page.page_number, boundary_method=method)
            reports.append(report_dict)
            logger.info(f"{bank} page {page.page_number}: {method} boundaries, calibration "
                        f"{report.calibration_score:.1f}, content {report.content_score:.1f}")

            for row in self.indexer.group_rows(page.items):
                lines.append(self.indexer.row_text(row))
                cells = self.indexer.split_row(row, columns)
                row_cells.append({t.field_name: c for t, c in zip(templates, cells) if t.field_name})

        result = self.extractor.extract("\n".join(lines), bank, processing_date)
        if not result.success:
            return result
        statement = result.data

        cell_warnings: List[Issue] = []
        cell_records = {DEPOSITS: [], CHECKS: []}
        for event, cells in zip(self.extractor.scan(lines, bank), row_cells):
            if event.kind not in cell_records or event.event not in ("item", "ignored"):
                continue
            record = self._record_from_cells(event.kind, cells, statement.bank, statement.statement_date,
                                             cell_warnings, processing_date)
            if record is not None:
                cell_records[event.kind].append(record)

        for kind, records in cell_records.items():
            parsed = [r for r in statement.records(kind) if not r.synthetic]
            if records and len(records) >= len(parsed):
                setattr(statement, kind, records)
                result.warnings = [w for w in result.warnings
                                   if not (w.code == SECTION_NOT_FOUND and w.field == kind)]
                if self.debug:
                    logger.debug(f"{bank}: {len(records)} {kind} read from column cells")
        if any(cell_records.values()):
            result.warnings.extend(cell_warnings)

        statement.metadata.update(extraction_method="positional", calibration=reports)
        return result

    @staticmethod
    def _record_from_cells(kind: str, cells: Dict[str, str], bank: str, statement_date: str,
                           warnings: List[Issue], processing_date: Optional[str]):
        date_text = cells.get("date", "")
        amount_text = cells.get("amount", "")
        if not is_date(date_text) or not amount_text or not is_amount_or_empty(amount_text):
            return None

        if kind == DEPOSITS:
            value_date = cells.get("value_date")
            return DepositRecord(
                bank=bank,
                statement_date=statement_date,
                deposit_date=parse_date(date_text, warnings, processing_date, "deposit_date"),
                amount=parse_amount(amount_text, warnings, "amount"),
                instrument_type=cells.get("description", ""),
                value_date=parse_date(value_date, warnings, processing_date, "value_date") if value_date else None,
                client_code=cells.get("client_code") or None,
                reference=cells.get("reference") or cells.get("check_number") or None,
            )
        return CheckRecord(
            bank=bank,
            statement_date=statement_date,
            issue_date=parse_date(date_text, warnings, processing_date, "issue_date"),
            check_number=cells.get("check_number") or cells.get("reference") or "",
            amount=parse_amount(amount_text, warnings, "amount"),
            payee=cells.get("payee") or cells.get("description") or None,
        )
