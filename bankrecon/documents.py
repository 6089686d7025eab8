"""Document-to-text adapters.

Sources expose one of three shapes: positioned pages (PDF), rows of cells
(spreadsheets) or plain text. ``read_pages`` applies the per-page and
per-document timeout policy to positional sources: a page that times out
is skipped, and a document that runs out of time keeps the pages already
read when any of them carry text.
"""
import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import pandas as pd
import pdfplumber

from .models import (
    DocumentSourceError, INVALID_INPUT, Issue, PAGE_TIMEOUT, Result, TextItem,
)

logger = logging.getLogger(__name__)

POSITIONAL = "positional"
TABULAR = "tabular"
TEXT = "text"


@dataclass
class PageContent:
    page_number: int
    page_width: float
    page_height: float
    items: List[TextItem] = field(default_factory=list)


@dataclass
class TabularContent:
    rows: List[List[Any]] = field(default_factory=list)


class DocumentSource:
    """Base class for document backends."""
    kind = TEXT

    def __init__(self, name: str):
        self.name = name

    def page_count(self) -> int:
        raise NotImplementedError

    def extract_page(self, index: int) -> PageContent:
        raise NotImplementedError

    def read_rows(self) -> TabularContent:
        raise NotImplementedError

    def read_text(self) -> str:
        raise NotImplementedError

    def release_handle(self, pending: Future) -> None:
        """Stop sharing backend state with a read that is still running."""

    def close(self) -> None:
        pass


class PdfPlumberSource(DocumentSource):
    """Positioned words from a PDF via pdfplumber.

    A page that timed out may still be running against the current handle;
    ``release_handle`` detaches that handle so later pages open a fresh one,
    and the old handle is closed once the hung read finishes.
    """
    kind = POSITIONAL

    def __init__(self, path: str, password: Optional[str] = None):
        super().__init__(os.path.basename(path))
        self.path = path
        self.password = password
        self._pdf = None
        self._lock = threading.Lock()

    def _open(self):
        with self._lock:
            if self._pdf is None:
                try:
                    if self.password:
                        self._pdf = pdfplumber.open(self.path, password=self.password)
                    else:
                        self._pdf = pdfplumber.open(self.path)
                except Exception as e:
                    raise DocumentSourceError(f"Cannot open PDF {self.path}: {e}") from e
            return self._pdf

    def page_count(self) -> int:
        pdf = self._open()
        try:
            return len(pdf.pages)
        except Exception as e:
            raise DocumentSourceError(f"Cannot read page tree of {self.path}: {e}") from e

    def extract_page(self, index: int) -> PageContent:
        pdf = self._open()
        try:
            page = pdf.pages[index]
            words = page.extract_words(keep_blank_chars=False, use_text_flow=False, extra_attrs=["size"])
            items = [
                TextItem(text=w["text"], x=float(w["x0"]), y=float(w["top"]),
                         font_size=float(w.get("size", 0.0)), width=float(w["x1"]) - float(w["x0"]))
                for w in words
            ]
            return PageContent(page_number=index + 1, page_width=float(page.width),
                               page_height=float(page.height), items=items)
        except Exception as e:
            raise DocumentSourceError(f"Cannot read page {index + 1} of {self.path}: {e}") from e

    def release_handle(self, pending: Future) -> None:
        with self._lock:
            pdf, self._pdf = self._pdf, None
        if pdf is not None:
            pending.add_done_callback(lambda _: pdf.close())

    def close(self) -> None:
        with self._lock:
            pdf, self._pdf = self._pdf, None
        if pdf is not None:
            pdf.close()


class SpreadsheetSource(DocumentSource):
    """Rows of cells from an Excel workbook or CSV file via pandas."""
    kind = TABULAR

    def __init__(self, path: str, sheet_name: Any = 0):
        super().__init__(os.path.basename(path))
        self.path = path
        self.sheet_name = sheet_name

    def read_rows(self) -> TabularContent:
        try:
            if self.path.lower().endswith(".csv"):
                df = pd.read_csv(self.path, header=None, dtype=object)
            else:
                df = pd.read_excel(self.path, sheet_name=self.sheet_name, header=None, dtype=object)
        except Exception as e:
            raise DocumentSourceError(f"Cannot read spreadsheet {self.path}: {e}") from e
        df = df.astype(object).where(pd.notna(df), None)
        return TabularContent(rows=df.values.tolist())


class RowsSource(DocumentSource):
    """In-memory rows, for ledgers and sheets already loaded by the caller."""
    kind = TABULAR

    def __init__(self, rows: List[List[Any]], name: str = "rows"):
        super().__init__(name)
        self.rows = rows

    def read_rows(self) -> TabularContent:
        return TabularContent(rows=[list(r) for r in self.rows])


class TextSource(DocumentSource):
    """Statement text that is already line-oriented."""
    kind = TEXT

    def __init__(self, text: str, name: str = "text"):
        super().__init__(name)
        self.text = text

    @classmethod
    def from_file(cls, path: str, encoding: str = "utf-8") -> "TextSource":
        with open(path, encoding=encoding) as f:
            return cls(f.read(), name=os.path.basename(path))

    def read_text(self) -> str:
        return self.text


class PositionedSource(DocumentSource):
    """Pages of positioned items already extracted by another backend."""
    kind = POSITIONAL

    def __init__(self, pages: List[PageContent], name: str = "pages"):
        super().__init__(name)
        self.pages = pages

    def page_count(self) -> int:
        return len(self.pages)

    def extract_page(self, index: int) -> PageContent:
        return self.pages[index]


def read_pages(source: DocumentSource, page_timeout: float = 10.0, document_timeout: float = 120.0,
               max_skipped_ratio: float = 0.25,
               clock: Callable[[], float] = time.monotonic) -> Result:
    """Read every page of a positional source under the timeout policy.

    Returns a Result whose data is the list of PageContent read. Pages that
    time out or fail in the backend are skipped with a warning.
    """
    try:
        count = source.page_count()
    except DocumentSourceError as e:
        return Result.failure(INVALID_INPUT, str(e))
    except Exception as e:
        logger.error(f"{source.name}: page count failed: {e}")
        return Result.failure(INVALID_INPUT, f"{source.name}: cannot read document ({e})")
    if count == 0:
        return Result.failure(INVALID_INPUT, f"{source.name}: document has no pages")

    result = Result(data=[])
    deadline = clock() + document_timeout
    skipped = 0
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="page-reader")
    try:
        for index in range(count):
            remaining = deadline - clock()
            if remaining <= 0:
                result.warn(PAGE_TIMEOUT, f"{source.name}: document timeout after {index} of {count} pages")
                skipped += count - index
                break
            future = executor.submit(source.extract_page, index)
            try:
                page = future.result(timeout=min(page_timeout, remaining))
            except FuturesTimeout:
                skipped += 1
                result.warn(PAGE_TIMEOUT, f"{source.name}: page {index + 1} timed out, skipped")
                logger.warning(f"{source.name}: page {index + 1} timed out after {page_timeout}s")
                # A hung page keeps its worker and backend handle busy; continue on fresh ones.
                source.release_handle(future)
                executor.shutdown(wait=False, cancel_futures=True)
                executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="page-reader")
                continue
            except Exception as e:
                skipped += 1
                result.warn(PAGE_TIMEOUT, f"{source.name}: page {index + 1} could not be read ({e}), skipped")
                logger.warning(f"{source.name}: page {index + 1} failed: {e}")
                continue
            result.data.append(page)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if not any(page.items for page in result.data):
        return Result(success=False, data=result.data,
                      errors=[Issue(INVALID_INPUT, f"{source.name}: no text could be extracted")],
                      warnings=result.warnings)
    if skipped and skipped / count > max_skipped_ratio:
        result.warn(PAGE_TIMEOUT, f"{source.name}: {skipped} of {count} pages skipped")
    return result
