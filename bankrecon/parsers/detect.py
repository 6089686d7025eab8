"""Bank detection for statement documents.

This module scores every supported bank against a document's filename,
text content and header cells, so that the matching grammar and column
template can be selected automatically.
"""
import os
import re
import logging
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from ..models import DETECTION_FAILURE, Result
from ..utils import normalize_label
from .grammars import GRAMMARS, BankGrammar

logger = logging.getLogger(__name__)

FILENAME_WEIGHT = 30
CONTENT_WEIGHT = 20
SECTION_WEIGHT = 10
HEADER_WEIGHT = 10
DETECTION_THRESHOLD = 30


@dataclass
class DetectionResult:
    """Information about a detected bank."""
    bank: Optional[str]
    score: int
    scores: Dict[str, int]
    features: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"bank": self.bank, "score": self.score, "scores": dict(self.scores),
                "features": list(self.features)}


def _identifier_pattern(identifier: str) -> re.Pattern:
    body = r"\s+".join(re.escape(part) for part in identifier.split())
    return re.compile(rf"(?<![A-Za-z0-9]){body}(?![A-Za-z0-9])", re.IGNORECASE)


class BankFormatDetector:
    """Weighted detector over the supported bank formats."""

    def __init__(self, grammars: Optional[Dict[str, BankGrammar]] = None,
                 threshold: int = DETECTION_THRESHOLD, debug: bool = False):
        self.grammars = grammars if grammars is not None else GRAMMARS
        self.threshold = threshold
        self.debug = debug
        self.profiles = {
            'BDK': {
                'identifiers': ['BDK', 'Banque de Dakar', 'RAPPORT BDK', 'POSITION BDK'],
                'headers': ['Solde Ouverture', 'Solde Clôture', 'Facilité', 'Limite', 'Utilisé',
                            'Disponible', 'CH.NO', 'Vendor Provider', 'TR No/FACT.No'],
            },
            'ATB': {
                'identifiers': ['ATB', 'Arab Tunisian Bank', 'RAPPORT ATB'],
                'headers': ['Solde Début', 'Solde Fin', 'Date Valeur', 'Nature'],
            },
            'BICIS': {
                'identifiers': ['BICIS', 'BNP Paribas', 'RAPPORT BICIS'],
                'headers': ['Solde Initial', 'Solde Final', 'Date Rapport', 'Type Facilité',
                            'Montant Limite'],
            },
            'ORA': {
                'identifiers': ['ORA', 'Orabank', 'ORABANK', 'RAPPORT ORA'],
                'headers': ['Balance Opening', 'Balance Closing', 'Report Date'],
            },
            'SGBS': {
                'identifiers': ['SGBS', 'Société Générale', 'Societe Generale', 'RAPPORT SGBS'],
                'headers': ['Solde Ouverture', 'Solde Fermeture', 'Date Position'],
            },
            'BIS': {
                'identifiers': ['BIS', 'Banque Islamique', 'RAPPORT BIS', 'POSITION BIS'],
                'headers': ['Opening Balance', 'Closing Balance Book', 'Financing Facilities'],
            },
        }
        self._identifier_patterns = {
            bank: [_identifier_pattern(i) for i in profile['identifiers']]
            for bank, profile in self.profiles.items()
        }

    def detect(self, text: str, filename: Optional[str] = None,
               header_row: Optional[Sequence] = None) -> Result:
        """
        Detect the bank that produced a document.

        Args:
            text: Document text (all pages or the first page)
            filename: Original file name, if known
            header_row: First row of cells for spreadsheet sources

        Returns:
            Result whose data is a DetectionResult; success is False when the
            best score stays below the detection threshold.
        """
        scores: Dict[str, int] = {}
        features: Dict[str, List[str]] = {}
        for bank in self.profiles:
            scores[bank], features[bank] = self._score_bank(bank, text or "", filename, header_row)

        best_bank, best_score = None, 0
        for bank, score in scores.items():
            if score > best_score:
                best_bank, best_score = bank, score

        if self.debug:
            logger.info(f"Bank detection scores: {scores}")

        if best_bank is None or best_score < self.threshold:
            detection = DetectionResult(bank=None, score=best_score, scores=scores)
            return Result.failure(
                DETECTION_FAILURE,
                f"Bank format not recognised (best score {best_score} < {self.threshold}); "
                "select the bank manually",
                data=detection,
            )

        logger.info(f"Detected bank {best_bank} (score {best_score})")
        return Result(success=True,
                      data=DetectionResult(bank=best_bank, score=best_score, scores=scores,
                                           features=features[best_bank]))

    def _score_bank(self, bank: str, text: str, filename: Optional[str],
                    header_row: Optional[Sequence]) -> Tuple[int, List[str]]:
        score = 0
        features = []
        profile = self.profiles[bank]

        if filename:
            base = os.path.basename(filename)
            for identifier, pattern in zip(profile['identifiers'], self._identifier_patterns[bank]):
                if pattern.search(base):
                    score += FILENAME_WEIGHT
                    features.append(f"filename:{identifier}")

        for identifier, pattern in zip(profile['identifiers'], self._identifier_patterns[bank]):
            if pattern.search(text):
                score += CONTENT_WEIGHT
                features.append(f"content:{identifier}")

        grammar = self.grammars.get(bank)
        if grammar is not None:
            for rule in grammar.sections:
                if rule.header.search(text):
                    score += SECTION_WEIGHT
                    features.append(f"section:{rule.kind}")

        if header_row:
            cells = {normalize_label(c) for c in header_row if c is not None}
            for header in profile['headers']:
                if normalize_label(header) in cells:
                    score += HEADER_WEIGHT
                    features.append(f"header:{header}")

        return score, features


def detect_bank(text: str, filename: Optional[str] = None) -> Optional[str]:
    """Returns just the detected bank name, or None."""
    result = BankFormatDetector().detect(text, filename)
    return result.data.bank if result.success else None
