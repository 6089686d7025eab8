"""High-level orchestrator for statement extraction and reconciliation.

Documents are extracted concurrently. Matching and risk aggregation wait
until every document of the period has finished, since both need the full
cross-bank snapshot.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .analysis import (
    ConsolidatedPosition, CrossEntityRiskAggregator, RiskReport, consolidated_position, generate_alerts,
)
from .config import Settings
from .documents import DocumentSource
from .matching import ReconciliationMatcher, ReconciliationReport
from .models import Alert, BankStatement, CollectionRecord, INVALID_INPUT, Issue, Result
from .parsers.router import StatementRouter
from .store import StatementStore
from .validation import StatementValidator, ValidationReport

logger = logging.getLogger(__name__)


@dataclass
class StatementDocument:
    source: DocumentSource
    bank: Optional[str] = None


@dataclass
class DocumentOutcome:
    name: str
    success: bool
    bank: Optional[str] = None
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "success": self.success, "bank": self.bank,
                "errors": [e.to_dict() for e in self.errors],
                "warnings": [w.to_dict() for w in self.warnings]}


@dataclass
class PipelineReport:
    documents: List[DocumentOutcome] = field(default_factory=list)
    statements: List[BankStatement] = field(default_factory=list)
    validations: List[ValidationReport] = field(default_factory=list)
    reconciliation: ReconciliationReport = field(default_factory=ReconciliationReport)
    risk: RiskReport = field(default_factory=RiskReport)
    position: ConsolidatedPosition = field(default_factory=ConsolidatedPosition)
    alerts: List[Alert] = field(default_factory=list)
    stored: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documents": [d.to_dict() for d in self.documents],
            "statements": [s.to_dict() for s in self.statements],
            "validations": [v.to_dict() for v in self.validations],
            "reconciliation": self.reconciliation.to_dict(),
            "risk": self.risk.to_dict(),
            "position": self.position.to_dict(),
            "alerts": [a.to_dict() for a in self.alerts],
            "stored": list(self.stored),
        }


class ReconciliationPipeline:
    """Runs extraction, validation, persistence, matching and risk analysis."""

    def __init__(self, settings: Optional[Settings] = None,
                 router: Optional[StatementRouter] = None,
                 validator: Optional[StatementValidator] = None,
                 matcher: Optional[ReconciliationMatcher] = None,
                 aggregator: Optional[CrossEntityRiskAggregator] = None,
                 store: Optional[StatementStore] = None,
                 debug: bool = False):
        self.settings = settings or Settings()
        self.router = router or StatementRouter(self.settings, debug=debug)
        self.validator = validator or StatementValidator(self.settings.balance_tolerance_floor,
                                                         self.settings.balance_tolerance_ratio)
        self.matcher = matcher or ReconciliationMatcher(debug=debug)
        self.aggregator = aggregator or CrossEntityRiskAggregator()
        self.store = store
        self.debug = debug

    def extract_all(self, documents: Sequence[StatementDocument],
                    processing_date: Optional[str] = None) -> List[Result]:
        """Extract documents in parallel; returns results in document order."""
        if not documents:
            return []
        workers = max(1, min(self.settings.max_workers, len(documents)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="statement") as pool:
            futures = [pool.submit(self.router.extract, d.source, d.bank, processing_date) for d in documents]
            # Barrier: every extraction completes before anything downstream runs
            return [f.result() for f in futures]

    def run(self, documents: Sequence[StatementDocument], collections: Sequence[CollectionRecord],
            processing_date: Optional[str] = None, now: Optional[datetime] = None) -> Result:
        report = PipelineReport()
        result = Result(data=report)

        for document, extraction in zip(documents, self.extract_all(documents, processing_date)):
            statement = extraction.data if extraction.success else None
            report.documents.append(DocumentOutcome(
                name=document.source.name,
                success=extraction.success,
                bank=statement.bank if statement is not None else document.bank,
                errors=list(extraction.errors),
                warnings=list(extraction.warnings),
            ))
            for issue in extraction.warnings:
                result.warn(issue.code, f"{document.source.name}: {issue.message}", issue.field)
            if statement is None:
                for issue in extraction.errors:
                    result.warn(issue.code, f"{document.source.name}: {issue.message}")
                continue
            report.statements.append(statement)

        if not report.statements:
            return result.fail(INVALID_INPUT, "No statement could be extracted")

        for statement in report.statements:
            validation = self.validator.validate(statement)
            report.validations.append(validation.data)
            for issue in validation.warnings:
                result.warn(issue.code, f"{statement.bank} {statement.statement_date}: {issue.message}", issue.field)
            if self.store is not None:
                stored = self.store.upsert(statement)
                report.stored.append(stored.data)

        report.reconciliation = self.matcher.reconcile(collections, report.statements).data
        report.risk = self.aggregator.analyze(report.statements).data
        report.position = consolidated_position(report.statements)
        report.alerts = generate_alerts(report.position, report.risk, now=now)

        logger.info(f"Pipeline finished: {len(report.statements)}/{len(documents)} statements, "
                    f"{len(report.reconciliation.results)} collections, {len(report.alerts)} alerts")
        return result
