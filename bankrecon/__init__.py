"""Bankrecon package: bank position statement extraction and reconciliation.

This package provides:
- ReconciliationPipeline: Extraction, validation, matching and risk in one run
- parsers: Section grammars, bank detection and per-source parsers
- positional: Column indexing and calibration for positioned PDF text
- matching: Scoring rules and the collections matcher
- analysis: Cross-bank risk, consolidated position and alerts
- exporters: Excel, JSON and XML export functions
- utils: Amount and date parsing helpers
"""

__all__ = [
    "ReconciliationPipeline",
    "StatementDocument",
    "Settings",
    "parsers",
    "positional",
    "matching",
    "analysis",
    "exporters",
    "utils",
]

from .config import Settings
from .pipeline import ReconciliationPipeline, StatementDocument
