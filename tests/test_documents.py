import threading
import time

import pytest

from bankrecon import documents
from bankrecon.documents import (
    PageContent, PdfPlumberSource, PositionedSource, RowsSource, SpreadsheetSource, TextSource, read_pages,
)
from bankrecon.models import INVALID_INPUT, PAGE_TIMEOUT, TextItem


def page(number, text="word"):
    return PageContent(page_number=number, page_width=850.0, page_height=1100.0,
                       items=[TextItem(text=text, x=50.0, y=10.0)])


class SlowSource(PositionedSource):
    """Pages listed in ``slow`` block until ``release`` is set."""

    def __init__(self, pages, slow=(), failing=()):
        super().__init__(pages, name="slow.pdf")
        self.slow = set(slow)
        self.failing = set(failing)
        self.release = threading.Event()

    def extract_page(self, index):
        if index in self.slow:
            self.release.wait(5)
        if index in self.failing:
            raise RuntimeError("corrupt page stream")
        return super().extract_page(index)


def test_timed_out_page_is_skipped_and_reading_continues():
    source = SlowSource([page(1), page(2), page(3)], slow={1})
    try:
        result = read_pages(source, page_timeout=0.2, document_timeout=30)
    finally:
        source.release.set()
    assert result.success
    assert [p.page_number for p in result.data] == [1, 3]
    codes = [w.code for w in result.warnings]
    assert codes.count(PAGE_TIMEOUT) == 2  # the skipped page, then 1 of 3 over the 25% ratio
    assert "page 2 timed out" in result.warnings[0].message


def test_skipped_ratio_below_threshold_adds_no_summary_warning():
    source = SlowSource([page(i) for i in range(1, 6)], failing={2})
    result = read_pages(source, page_timeout=1, max_skipped_ratio=0.25)
    assert result.success
    assert len(result.data) == 4
    assert len(result.warnings) == 1
    assert "could not be read" in result.warnings[0].message


def test_document_timeout_keeps_pages_already_read():
    ticks = iter(range(0, 100, 6))
    source = SlowSource([page(1), page(2), page(3)])
    result = read_pages(source, page_timeout=5, document_timeout=10, clock=lambda: next(ticks))
    assert result.success
    assert [p.page_number for p in result.data] == [1]
    assert "document timeout after 1 of 3 pages" in result.warnings[0].message


def test_document_without_text_fails():
    empty = PageContent(page_number=1, page_width=850.0, page_height=1100.0, items=[])
    result = read_pages(PositionedSource([empty]))
    assert not result.success
    assert result.errors[0].code == INVALID_INPUT


def test_document_without_pages_fails():
    result = read_pages(PositionedSource([]))
    assert not result.success
    assert "no pages" in result.errors[0].message


def test_text_source_from_file(tmp_path, bdk_text):
    path = tmp_path / "bdk.txt"
    path.write_text(bdk_text, encoding="utf-8")
    source = TextSource.from_file(str(path))
    assert source.name == "bdk.txt"
    assert source.read_text() == bdk_text


def test_spreadsheet_source_reads_csv_cells(tmp_path):
    path = tmp_path / "position.csv"
    path.write_text("SOLDE OUVERTURE,10 000 000\n,\nDEPOTS NON CREDITES,\n", encoding="utf-8")
    rows = SpreadsheetSource(str(path)).read_rows().rows
    assert rows[0] == ["SOLDE OUVERTURE", "10 000 000"]
    assert rows[1] == [None, None]


def test_rows_source_copies_rows():
    original = [["a", 1]]
    rows = RowsSource(original).read_rows().rows
    rows[0].append("x")
    assert original == [["a", 1]]


def test_base_source_requires_backend():
    with pytest.raises(NotImplementedError):
        TextSource("x").page_count()


class FakePage:
    width = 850.0
    height = 1100.0

    def __init__(self, index, gate):
        self.index = index
        self.gate = gate

    def extract_words(self, **kwargs):
        if self.index == 1:
            self.gate.wait(5)
        return [{"text": f"p{self.index + 1}", "x0": 10.0, "x1": 30.0, "top": 10.0, "size": 9.0}]


class FakePdf:
    def __init__(self, gate, pages=3):
        self.pages = [FakePage(i, gate) for i in range(pages)]
        self.closed = False

    def close(self):
        self.closed = True


class BrokenPdf:
    @property
    def pages(self):
        raise RuntimeError("broken page tree")

    def close(self):
        pass


def test_pdf_page_after_timeout_uses_fresh_handle(monkeypatch):
    gate = threading.Event()
    opened = []

    def fake_open(path, **kwargs):
        opened.append(FakePdf(gate))
        return opened[-1]

    monkeypatch.setattr(documents.pdfplumber, "open", fake_open)
    source = PdfPlumberSource("statement.pdf")
    try:
        result = read_pages(source, page_timeout=0.2, document_timeout=30)
        assert [p.page_number for p in result.data] == [1, 3]
        assert len(opened) == 2
        source.close()
        assert opened[1].closed
        # the hung read still owns the first handle
        assert not opened[0].closed
    finally:
        gate.set()
    for _ in range(100):
        if opened[0].closed:
            break
        time.sleep(0.02)
    assert opened[0].closed


def test_pdf_backend_errors_become_invalid_input(monkeypatch):
    monkeypatch.setattr(documents.pdfplumber, "open", lambda path, **kwargs: BrokenPdf())
    result = read_pages(PdfPlumberSource("broken.pdf"))
    assert not result.success
    assert result.errors[0].code == INVALID_INPUT
    assert "broken page tree" in result.errors[0].message


def test_unexpected_page_count_error_is_invalid_input():
    class Unreadable(PositionedSource):
        def page_count(self):
            raise RuntimeError("PDFSyntaxError: broken page tree")

    result = read_pages(Unreadable([], name="bad.pdf"))
    assert not result.success
    assert result.errors[0].code == INVALID_INPUT
