"""Statement router: reads a document, detects its bank and dispatches it.

The parser is chosen from the document shape (positioned pages, spreadsheet
rows or plain text); the bank is either supplied by the caller or detected.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from ..config import Settings
from ..documents import DocumentSource, POSITIONAL, TABULAR, TEXT, read_pages
from ..models import BankReconError, INVALID_INPUT, Result
from ..positional import TextPositionIndexer
from .detect import BankFormatDetector
from .positional import PositionalStatementParser
from .sections import SectionGrammarExtractor
from .tabular import TabularStatementParser, rows_to_lines

logger = logging.getLogger(__name__)


class StatementRouter:
    """Selects the extraction strategy for each document."""

    def __init__(self, settings: Optional[Settings] = None,
                 detector: Optional[BankFormatDetector] = None,
                 extractor: Optional[SectionGrammarExtractor] = None,
                 debug: bool = False):
        self.settings = settings or Settings()
        self.debug = debug
        self.extractor = extractor or SectionGrammarExtractor(debug=debug)
        self.detector = detector or BankFormatDetector(threshold=self.settings.detection_threshold, debug=debug)
        self.indexer = TextPositionIndexer(debug=debug)
        self.positional_parser = PositionalStatementParser(self.extractor, indexer=self.indexer, debug=debug)
        self.tabular_parser = TabularStatementParser(self.extractor, debug=debug)
        self.parser_registry = {
            POSITIONAL: self._parse_positional,
            TABULAR: self._parse_tabular,
            TEXT: self._parse_text,
        }

    def extract(self, source: DocumentSource, bank: Optional[str] = None,
                processing_date: Optional[str] = None) -> Result:
        """
        Extract one statement.

        Args:
            source: Document backend
            bank: Bank code, or None to detect it
            processing_date: ISO date used when a statement date cannot be read

        Returns:
            Result whose data is a BankStatement. Detection failures and
            unreadable documents come back with success=False.
        """
        processing_date = processing_date or date.today().isoformat()
        try:
            content, text, header_row, read_result = self._read(source)
            if not read_result.success:
                return read_result
            if not text.strip():
                empty = Result.failure(INVALID_INPUT, f"{source.name}: document contains no text")
                empty.warnings = read_result.warnings
                return empty

            detection = None
            if bank is None:
                detection = self.detector.detect(text, filename=source.name, header_row=header_row)
                if not detection.success:
                    detection.warnings.extend(read_result.warnings)
                    logger.warning(f"{source.name}: {detection.errors[0].message}")
                    return detection
                bank = detection.data.bank

            result = self.parser_registry[source.kind](content, text, bank, processing_date)
        except BankReconError as e:
            logger.error(f"{source.name}: {e}")
            return Result.failure(INVALID_INPUT, f"{source.name}: {e}")
        except Exception as e:
            logger.exception(f"{source.name}: document backend failed")
            return Result.failure(INVALID_INPUT, f"{source.name}: cannot read document ({e})")
        finally:
            source.close()

        result.warnings = read_result.warnings + result.warnings
        if result.success:
            result.data.metadata["source"] = source.name
            if detection is not None:
                result.data.metadata["detection"] = detection.data.to_dict()
        logger.info(f"{source.name}: {bank} extraction {'succeeded' if result.success else 'failed'} "
                    f"with {len(result.warnings)} warnings")
        return result

    def _read(self, source: DocumentSource) -> Tuple[Any, str, Optional[List[Any]], Result]:
        if source.kind == POSITIONAL:
            pages_result = read_pages(source, self.settings.page_timeout, self.settings.document_timeout,
                                      self.settings.max_skipped_page_ratio)
            pages = pages_result.data or []
            lines = [self.indexer.row_text(row) for page in pages for row in self.indexer.group_rows(page.items)]
            return pages, "\n".join(lines), None, pages_result
        if source.kind == TABULAR:
            rows = source.read_rows().rows
            header_row = rows[0] if rows else None
            return rows, "\n".join(rows_to_lines(rows)), header_row, Result()
        text = source.read_text() or ""
        return text, text, None, Result()

    def _parse_positional(self, pages, text: str, bank: str, processing_date: str) -> Result:
        return self.positional_parser.parse(pages, bank, processing_date)

    def _parse_tabular(self, rows, text: str, bank: str, processing_date: str) -> Result:
        return self.tabular_parser.parse(rows, bank, processing_date)

    def _parse_text(self, content, text: str, bank: str, processing_date: str) -> Result:
        return self.extractor.extract(text, bank, processing_date)


def extract_statement(source: DocumentSource, bank: Optional[str] = None,
                      settings: Optional[Settings] = None, debug: bool = False) -> Result:
    """Convenience function: route and extract a single document."""
    return StatementRouter(settings=settings, debug=debug).extract(source, bank)
