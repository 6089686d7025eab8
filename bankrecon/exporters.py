"""Export module: reconciliation results to Excel, JSON and XML.

This module writes the pipeline report for the dashboard and notification
collaborators; it never renders anything itself.
"""
import json
import logging
import xml.dom.minidom
import xml.etree.ElementTree as ET
from typing import Any, Sequence

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .models import BankStatement

logger = logging.getLogger(__name__)

HEADER_FONT = Font(bold=True)


def _write_table(ws, headers: Sequence[str], rows: Sequence[Sequence[Any]], widths: Sequence[int] = ()) -> None:
    for col, header in enumerate(headers, start=1):
        ws.cell(row=1, column=col, value=header).font = HEADER_FONT
    for row_idx, values in enumerate(rows, start=2):
        for col, value in enumerate(values, start=1):
            ws.cell(row=row_idx, column=col, value=value)
    for col, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(col)].width = width


def export_excel(report: Any, output_path: str) -> None:
    """
    Export statements, reconciliation results, client risk and alerts to an Excel file.
    """
    wb = openpyxl.Workbook()
    # Remove default sheet
    if "Sheet" in wb.sheetnames:
        wb.remove(wb["Sheet"])

    # --- 1. Statements ---
    ws = wb.create_sheet("Statements")
    _write_table(
        ws,
        ["Bank", "Date", "Opening", "Deposits", "Checks", "Closing", "Expected Closing",
         "Discrepancy", "Balanced", "Warnings"],
        [
            [v.bank, v.statement_date, s.opening_balance, s.total_deposits, s.total_checks,
             s.closing_balance, v.expected_closing, v.discrepancy, "YES" if v.balanced else "NO",
             len(v.warnings)]
            for s, v in zip(report.statements, report.validations)
        ],
        [10, 12, 16, 16, 16, 16, 18, 14, 10, 10],
    )

    # --- 2. Reconciliation ---
    ws = wb.create_sheet("Reconciliation")
    rows = []
    for result in report.reconciliation.results:
        c = result.collection
        matched = result.matched_record
        rows.append([
            c.client_code, c.instrument_type, c.amount, c.statement_date,
            result.status, result.match_type, result.confidence,
            matched.bank if matched else (result.matched_bounced_item.bank if result.matched_bounced_item else ""),
            matched.reference if matched else "",
            matched.amount if matched else (result.matched_bounced_item.amount if result.matched_bounced_item else ""),
            "; ".join(result.reasons),
        ])
    _write_table(ws, ["Client", "Instrument", "Amount", "Date", "Status", "Match Type", "Confidence",
                      "Bank", "Reference", "Matched Amount", "Reasons"],
                 rows, [12, 12, 14, 12, 10, 11, 11, 8, 18, 15, 60])

    summary_row = len(rows) + 3
    ws.cell(row=summary_row, column=1, value="Summary").font = HEADER_FONT
    for offset, (key, value) in enumerate(report.reconciliation.summary.items(), start=1):
        ws.cell(row=summary_row + offset, column=1, value=key)
        ws.cell(row=summary_row + offset, column=2, value=json.dumps(value) if isinstance(value, dict) else value)

    # --- 3. Client Risk ---
    ws = wb.create_sheet("Client Risk")
    _write_table(
        ws,
        ["Client", "Exposure", "Banks", "Bank Count", "Items", "Risk Tier", "Cross-Bank"],
        [[p.client_code, p.total_exposure, ", ".join(p.banks), p.bank_count, p.item_count, p.risk_tier,
          "YES" if p.bank_count > 1 else "NO"] for p in report.risk.profiles],
        [12, 16, 24, 11, 8, 11, 11],
    )

    # --- 4. Alerts ---
    ws = wb.create_sheet("Alerts")
    _write_table(
        ws,
        ["Type", "Trigger", "Title", "Description", "Action", "Value", "Threshold", "Created"],
        [[a.type, a.trigger, a.title, a.description, a.action, a.value, a.threshold, a.created_at]
         for a in report.alerts],
        [10, 20, 30, 60, 40, 12, 12, 20],
    )

    wb.save(output_path)
    logger.info(f"Excel report written to {output_path}")


def export_json(report: Any, output_path: str) -> None:
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)
    logger.info(f"JSON report written to {output_path}")


def export_xml(statements: Sequence[BankStatement], output_path: str) -> None:
    """Export statements and their line items to a pretty-printed XML file."""
    root = ET.Element("BankStatements")
    for statement in statements:
        st_el = ET.SubElement(root, "Statement", bank=statement.bank, date=statement.statement_date,
                              checksum=statement.checksum)
        ET.SubElement(st_el, "OpeningBalance").text = str(statement.opening_balance)
        ET.SubElement(st_el, "ClosingBalance").text = str(statement.closing_balance)
        for kind, data in statement.content_dict().items():
            if not isinstance(data, list):
                continue
            section_el = ET.SubElement(st_el, "".join(p.capitalize() for p in kind.split("_")))
            for record in data:
                record_el = ET.SubElement(section_el, "Item")
                for key, value in record.items():
                    if value is None or key in ("bank", "statement_date"):
                        continue
                    ET.SubElement(record_el, key).text = str(value)

    xml_str = ET.tostring(root, encoding="utf-8")
    pretty = xml.dom.minidom.parseString(xml_str).toprettyxml(indent="  ")
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(pretty)
    logger.info(f"XML export written to {output_path}")
