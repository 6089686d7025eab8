"""Calibration of column boundaries against a bank's expected layout."""
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models import Column, ColumnTemplate, InvalidBoundaryError

logger = logging.getLogger(__name__)

REFERENCE_PAGE_WIDTH = 850.0


@dataclass
class ColumnCalibration:
    name: str
    index: int
    expected_start: float
    expected_end: float
    actual_start: float
    actual_end: float
    calibration_score: float
    content_score: float
    item_count: int
    valid_count: int

    @property
    def zero_population(self) -> bool:
        return self.item_count == 0


@dataclass
class CalibrationReport:
    page_width: float
    columns: List[ColumnCalibration]
    calibration_score: float
    content_score: float
    issues: List[str] = field(default_factory=list)
    bank: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for col, col_data in zip(self.columns, data["columns"]):
            col_data["zero_population"] = col.zero_population
        return data


class ColumnCalibrationEngine:
    """Scores actual column boundaries and contents against templates."""

    def __init__(self, reference_page_width: float = REFERENCE_PAGE_WIDTH, debug: bool = False):
        self.reference_page_width = reference_page_width
        self.debug = debug

    def expected_bounds(self, template: ColumnTemplate, page_width: float) -> Tuple[float, float]:
        scale = page_width / self.reference_page_width
        return template.x_zone[0] * scale, template.x_zone[1] * scale

    def scaled_boundaries(self, templates: Sequence[ColumnTemplate],
                          page_width: float) -> List[Tuple[float, float]]:
        """Configured boundary set for a page of the given width."""
        return [self.expected_bounds(t, page_width) for t in templates]

    @staticmethod
    def boundary_score(actual: Tuple[float, float], expected: Tuple[float, float],
                       page_width: float) -> float:
        if page_width <= 0:
            raise InvalidBoundaryError(f"Page width must be positive, got {page_width}")
        deviation = abs(actual[0] - expected[0]) + abs(actual[1] - expected[1])
        return max(0.0, 100.0 - deviation / (page_width / 100.0) * 10.0)

    @staticmethod
    def content_score(template: ColumnTemplate, texts: Sequence[str]) -> Tuple[float, int]:
        """Share of texts accepted by the template validator; empty columns score 100."""
        if not texts:
            return 100.0, 0
        valid = sum(1 for t in texts if template.validate(t))
        return valid / len(texts) * 100.0, valid

    def calibrate(self, columns: Sequence[Column], templates: Sequence[ColumnTemplate],
                  page_width: float, bank: Optional[str] = None) -> CalibrationReport:
        issues = []
        if len(columns) != len(templates):
            issues.append(f"column count mismatch: {len(columns)} detected, {len(templates)} expected")

        results = []
        for column, template in zip(columns, templates):
            expected = self.expected_bounds(template, page_width)
            texts = [item.text for item in column.items]
            content, valid = self.content_score(template, texts)
            result = ColumnCalibration(
                name=template.name,
                index=column.index,
                expected_start=round(expected[0], 2),
                expected_end=round(expected[1], 2),
                actual_start=column.x_start,
                actual_end=column.x_end,
                calibration_score=round(self.boundary_score((column.x_start, column.x_end), expected, page_width), 2),
                content_score=round(content, 2),
                item_count=len(texts),
                valid_count=valid,
            )
            if result.zero_population:
                issues.append(f"zero-population column '{template.name}'")
            results.append(result)

        calibration = sum(r.calibration_score for r in results) / len(results) if results else 0.0
        content = sum(r.content_score for r in results) / len(results) if results else 0.0
        if self.debug:
            logger.debug(f"Calibration {bank or ''}: boundaries {calibration:.1f}, content {content:.1f}, issues {issues}")
        return CalibrationReport(page_width=page_width, columns=results,
                                 calibration_score=round(calibration, 2),
                                 content_score=round(content, 2), issues=issues, bank=bank)
