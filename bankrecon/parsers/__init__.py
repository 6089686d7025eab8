"""Bank statement parsers: grammars, detection and per-source extraction."""

from .grammars import GRAMMARS, SUPPORTED_BANKS, BankGrammar, SectionRule, grammar_for
from .sections import SectionGrammarExtractor, SectionScanner
from .detect import BankFormatDetector, DetectionResult, detect_bank
from .positional import PositionalStatementParser
from .tabular import TabularStatementParser
from .router import StatementRouter, extract_statement

__all__ = [
    "GRAMMARS",
    "SUPPORTED_BANKS",
    "BankGrammar",
    "SectionRule",
    "grammar_for",
    "SectionGrammarExtractor",
    "SectionScanner",
    "BankFormatDetector",
    "DetectionResult",
    "detect_bank",
    "PositionalStatementParser",
    "TabularStatementParser",
    "StatementRouter",
    "extract_statement",
]
