"""Column indexing of positioned text runs.

Items are bucketed by nearest column center. Rows are rebuilt by grouping
items whose vertical positions fall within a small tolerance.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from ..models import Column, InvalidBoundaryError, TextItem

logger = logging.getLogger(__name__)

Boundary = Tuple[float, float]

ROW_TOLERANCE = 5.0
MIN_COLUMN_GAP = 12.0


class TextPositionIndexer:
    """Assigns positioned text items to column buckets."""

    def __init__(self, row_tolerance: float = ROW_TOLERANCE, min_gap: float = MIN_COLUMN_GAP,
                 debug: bool = False):
        self.row_tolerance = row_tolerance
        self.min_gap = min_gap
        self.debug = debug

    def build_columns(self, boundaries: Sequence[Boundary], page_width: float) -> List[Column]:
        if page_width <= 0:
            raise InvalidBoundaryError(f"Page width must be positive, got {page_width}")
        if not boundaries:
            raise InvalidBoundaryError("At least one column boundary is required")
        columns = []
        for index, (x_start, x_end) in enumerate(boundaries):
            if x_start < 0 or x_end > page_width:
                raise InvalidBoundaryError(
                    f"Column {index} [{x_start}, {x_end}] lies outside page width {page_width}")
            columns.append(Column(x_start=float(x_start), x_end=float(x_end), index=index))
        return columns

    @staticmethod
    def nearest_column(x: float, columns: Sequence[Column]) -> int:
        """Index of the column whose center is closest to x; lowest index wins ties."""
        best_index = 0
        best_distance = abs(x - columns[0].center)
        for column in columns[1:]:
            distance = abs(x - column.center)
            if distance < best_distance:
                best_index = column.index
                best_distance = distance
        return best_index

    def assign(self, items: Sequence[TextItem], boundaries: Sequence[Boundary],
               page_width: float) -> List[Column]:
        columns = self.build_columns(boundaries, page_width)
        for item in items:
            columns[self.nearest_column(item.x, columns)].items.append(item)
        if self.debug:
            logger.debug(f"Indexed {len(items)} items into columns {[len(c.items) for c in columns]}")
        return columns

    def detect_boundaries(self, items: Sequence[TextItem], page_width: float,
                          expected_count: int) -> Optional[List[Boundary]]:
        """Derive column boundaries from horizontal gaps between text runs.

        Runs are merged into clusters whenever they overlap or sit closer than
        ``min_gap``; each cluster becomes a column whose edges are the
        midpoints of the surrounding gaps. Returns None when the number of
        clusters differs from ``expected_count``.
        """
        if not items or page_width <= 0:
            return None
        spans = []
        for item in items:
            start = max(0.0, item.x)
            end = min(page_width, max(item.right, item.x))
            # skip runs that lie off the page
            if start < page_width and end >= start:
                spans.append((start, end))
        if not spans:
            return None
        spans.sort()
        clusters = [list(spans[0])]
        for start, end in spans[1:]:
            if start - clusters[-1][1] < self.min_gap:
                clusters[-1][1] = max(clusters[-1][1], end)
            else:
                clusters.append([start, end])

        if len(clusters) != expected_count:
            if self.debug:
                logger.debug(f"Found {len(clusters)} x-clusters, expected {expected_count}")
            return None

        boundaries = []
        for index, (start, end) in enumerate(clusters):
            left = 0.0 if index == 0 else (clusters[index - 1][1] + start) / 2.0
            right = page_width if index == len(clusters) - 1 else (end + clusters[index + 1][0]) / 2.0
            boundaries.append((left, right))
        return boundaries

    def group_rows(self, items: Sequence[TextItem]) -> List[List[TextItem]]:
        """Group items into visual lines, top to bottom, each sorted left to right."""
        rows: List[List[TextItem]] = []
        row_y = None
        for item in sorted(items, key=lambda i: (i.y, i.x)):
            if row_y is None or abs(item.y - row_y) > self.row_tolerance:
                rows.append([item])
                row_y = item.y
            else:
                rows[-1].append(item)
        return [sorted(row, key=lambda i: i.x) for row in rows]

    def split_row(self, row: Sequence[TextItem], columns: Sequence[Column]) -> List[str]:
        """Text of one visual line, split into per-column cells."""
        cells: List[List[str]] = [[] for _ in columns]
        for item in row:
            cells[self.nearest_column(item.x, columns)].append(item.text)
        return [" ".join(parts).strip() for parts in cells]

    @staticmethod
    def row_text(row: Sequence[TextItem]) -> str:
        return " ".join(i.text for i in row).strip()

    @staticmethod
    def column_counts(columns: Sequence[Column]) -> List[int]:
        return [len(c.items) for c in columns]
