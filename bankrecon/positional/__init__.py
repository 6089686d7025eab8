"""Positional layout analysis: column indexing and calibration."""

from .indexer import TextPositionIndexer
from .calibration import ColumnCalibrationEngine, CalibrationReport, REFERENCE_PAGE_WIDTH
from .templates import COLUMN_TEMPLATES, templates_for

__all__ = [
    "TextPositionIndexer",
    "ColumnCalibrationEngine",
    "CalibrationReport",
    "REFERENCE_PAGE_WIDTH",
    "COLUMN_TEMPLATES",
    "templates_for",
]
