"""Command-line entry point.

    bankrecon extract STATEMENT... [--bank BDK] [--output out.json]
    bankrecon reconcile STATEMENT... --collections ledger.xlsx [--excel report.xlsx] [--json report.json]
"""
import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .config import Settings, configure_logging
from .documents import DocumentSource, PdfPlumberSource, SpreadsheetSource, TextSource
from .exporters import export_excel, export_json, export_xml
from .ledger import load_collections
from .parsers.grammars import SUPPORTED_BANKS
from .parsers.router import StatementRouter
from .pipeline import ReconciliationPipeline, StatementDocument
from .store import StatementStore

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = ('.xlsx', '.xls', '.csv')


def source_for_path(path: str, password: Optional[str] = None) -> DocumentSource:
    ext = os.path.splitext(path)[1].lower()
    if ext == '.pdf':
        return PdfPlumberSource(path, password=password)
    if ext in SPREADSHEET_EXTENSIONS:
        return SpreadsheetSource(path)
    if ext == '.txt':
        return TextSource.from_file(path)
    raise ValueError(f"Unsupported statement file type: {path}")


def parse_args(argv: List[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="bankrecon", description="Extract and reconcile bank position statements")
    p.add_argument("--env", help="Path to a .env file", default=None)
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    ext = sub.add_parser("extract", help="Extract statements to JSON or XML")
    ext.add_argument("files", nargs="+", help="Statement files (PDF, spreadsheet or text)")
    ext.add_argument("--bank", choices=SUPPORTED_BANKS, default=None, help="Bank code (detected when omitted)")
    ext.add_argument("--password", default=None, help="PDF password (if known)")
    ext.add_argument("-o", "--output", default=None, help="Output file (.json or .xml); stdout when omitted")

    rec = sub.add_parser("reconcile", help="Match a collections ledger against statements")
    rec.add_argument("files", nargs="+", help="Statement files for the period")
    rec.add_argument("-c", "--collections", required=True, help="Collections ledger (Excel or CSV)")
    rec.add_argument("--date", default=None, help="Processing date (YYYY-MM-DD)")
    rec.add_argument("--excel", default=None, help="Write the Excel report here")
    rec.add_argument("--json", default=None, help="Write the JSON report here")
    rec.add_argument("--db", nargs="?", const="", default=None, metavar="URL",
                     help="Persist statements (to URL, or the configured database)")
    return p.parse_args(argv)


def _missing_files(paths: List[str]) -> List[str]:
    return [path for path in paths if not os.path.exists(path)]


def run_extract(args: argparse.Namespace, settings: Settings) -> int:
    router = StatementRouter(settings, debug=args.debug)
    statements = []
    failed = 0
    for path in args.files:
        result = router.extract(source_for_path(path, args.password), bank=args.bank)
        for issue in result.warnings:
            logger.warning(f"{path}: {issue}")
        if not result.success:
            failed += 1
            for issue in result.errors:
                logger.error(f"{path}: {issue}")
            continue
        statements.append(result.data)

    if args.output and args.output.lower().endswith('.xml'):
        export_xml(statements, args.output)
    else:
        payload = json.dumps([s.to_dict() for s in statements], ensure_ascii=False, indent=2)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(payload)
        else:
            print(payload)
    return 3 if failed == len(args.files) else 0


def run_reconcile(args: argparse.Namespace, settings: Settings) -> int:
    ledger = load_collections(args.collections)
    if not ledger.success:
        for issue in ledger.errors:
            logger.error(f"{args.collections}: {issue}")
        return 3

    store = StatementStore(args.db or settings.database_url) if args.db is not None else None
    pipeline = ReconciliationPipeline(settings, store=store, debug=args.debug)
    documents = [StatementDocument(source_for_path(path)) for path in args.files]
    result = pipeline.run(documents, ledger.data, processing_date=args.date)
    for issue in result.warnings:
        logger.warning(str(issue))
    if not result.success:
        for issue in result.errors:
            logger.error(str(issue))
        return 3

    report = result.data
    if args.excel:
        export_excel(report, args.excel)
    if args.json:
        export_json(report, args.json)
    if not args.excel and not args.json:
        print(json.dumps(report.reconciliation.summary, ensure_ascii=False, indent=2))
    return 0


def main_cli(argv: List[str]) -> int:
    args = parse_args(argv)
    settings = Settings.from_env(args.env)
    configure_logging("DEBUG" if args.debug else settings.log_level, settings.log_dir)

    paths = list(args.files) + ([args.collections] if args.command == "reconcile" else [])
    missing = _missing_files(paths)
    if missing:
        for path in missing:
            print(f"File not found: {path}", file=sys.stderr)
        return 2

    try:
        if args.command == "extract":
            return run_extract(args, settings)
        return run_reconcile(args, settings)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


def main() -> None:
    sys.exit(main_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
