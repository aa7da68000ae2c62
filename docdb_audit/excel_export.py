"""Styled Excel workbook of an audit result, one sheet per stage."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from .models import AuditResult

logger = logging.getLogger(__name__)

HEADER_COLOR = "1F4E78"


def _cell_value(value):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(str(_cell_value(v)) for v in value)
    return value


def _collection_rows(result: AuditResult) -> List[Dict[str, Any]]:
    rows = []
    for name, analysis in result.collections.items():
        rows.append({
            "collection": name,
            "document_count": "ERROR" if analysis.error else analysis.document_count,
            "indexes": len(analysis.indexes),
            "sampled": analysis.schema.sample_size,
            "fields": len(analysis.schema.fields),
            "quality_issues": analysis.quality.total_issues,
            "error": analysis.error or "",
        })
    return rows


def _schema_rows(result: AuditResult) -> List[Dict[str, Any]]:
    rows = []
    for name, analysis in result.collections.items():
        for path, stat in sorted(analysis.schema.fields.items()):
            rows.append({
                "collection": name,
                "field": path,
                "presence": stat.presence_count,
                "presence_ratio": stat.presence_ratio,
                "types": sorted(t.value for t in stat.observed_types),
                "null_count": stat.null_count,
                "sample_values": json.dumps(list(stat.sample_values), default=str)[:200],
            })
    return rows


def _quality_rows(result: AuditResult) -> List[Dict[str, Any]]:
    rows = []
    for name, analysis in result.collections.items():
        for issue in analysis.quality.issues:
            rows.append({
                "collection": name,
                "document": issue.document_index,
                "check": issue.check.value,
                "field": issue.field or "",
                "message": issue.message,
            })
    return rows


def _relationship_rows(result: AuditResult) -> List[Dict[str, Any]]:
    return [
        {
            "from": rel.descriptor.source_path,
            "to": rel.descriptor.target_path,
            "array": rel.descriptor.is_array,
            "checked": rel.checked,
            "valid": rel.valid,
            "invalid": rel.invalid,
            "missing": rel.missing,
            "valid_percent": rel.valid_percent,
            "orphan_samples": json.dumps(list(rel.orphan_samples), default=str),
            "error": rel.error or "",
        }
        for rel in result.relationships
    ]


def _migration_rows(result: AuditResult) -> List[Dict[str, Any]]:
    rows = []
    for phase in result.phases:
        for task in phase.tasks:
            rows.append({
                "phase": phase.number,
                "priority": task.priority.value,
                "collection": task.collection,
                "type": task.type.value,
                "description": task.description,
                "affected_docs": task.affected_docs,
                "script": task.script,
            })
    return rows


def collect_sheets(result: AuditResult) -> Dict[str, List[Dict[str, Any]]]:
    return {
        "Collections": _collection_rows(result),
        "Schema": _schema_rows(result),
        "Quality": _quality_rows(result),
        "Relationships": _relationship_rows(result),
        "Migrations": _migration_rows(result),
    }


def _style_sheet(ws):
    header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True)

    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="left", vertical="center")

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions

    for col in ws.columns:
        col_letter = col[0].column_letter
        max_len = max(len(str(cell.value)) if cell.value is not None else 0 for cell in col)
        ws.column_dimensions[col_letter].width = min(max(12, max_len + 2), 80)


def _write_sheet(ws, rows):
    headers = list(rows[0].keys()) if rows else ["note"]
    ws.append(headers)
    if rows:
        for row in rows:
            ws.append([_cell_value(row.get(h, "")) for h in headers])
    else:
        ws.append(["No rows"])
    _style_sheet(ws)


def write_workbook(result: AuditResult, output_path) -> Path:
    """Write the audit result to ``output_path`` (.xlsx) and return the path."""
    output_path = Path(output_path).expanduser().resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    sheets = collect_sheets(result)
    wb = Workbook()
    ws = wb.active
    for idx, (sheet_name, rows) in enumerate(sheets.items()):
        if idx:
            ws = wb.create_sheet(title=sheet_name)
        else:
            ws.title = sheet_name
        _write_sheet(ws, rows)
    wb.save(output_path)

    row_count = sum(len(rows) for rows in sheets.values())
    logger.info(f"Wrote {row_count} rows across {len(sheets)} sheets to {output_path}")
    return output_path
