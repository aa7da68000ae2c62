"""
Markdown reports and the raw JSON dump of an audit result.

Files written to the output directory:
- DATABASE_ANALYSIS_REPORT.md   per-collection schema, indexes, sample document
- RELATIONSHIP_ANALYSIS_REPORT.md
- DATA_QUALITY_REPORT.md
- MIGRATION_PLAN.md
- SUMMARY.md                    totals, critical issues, recommendations
- raw-analysis-data.json        AuditResult.to_dict()
"""

import json
import logging
from pathlib import Path
from typing import Dict, List

from .models import AuditResult, Priority
from .planner import PHASE_ACTIONS, priority_counts

logger = logging.getLogger(__name__)

CRITICAL_QUALITY_THRESHOLD = 10

REPORT_FILES = (
    ("DATABASE_ANALYSIS_REPORT.md", "Detailed schema analysis"),
    ("RELATIONSHIP_ANALYSIS_REPORT.md", "Relationship integrity analysis"),
    ("DATA_QUALITY_REPORT.md", "Data quality issues"),
    ("MIGRATION_PLAN.md", "Required migrations"),
    ("SUMMARY.md", "This summary report"),
)
RAW_DATA_FILE = "raw-analysis-data.json"


def _json_block(value) -> List[str]:
    return ["```json", json.dumps(value, indent=2, default=str), "```", ""]


def _cell(value) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def database_analysis_report(result: AuditResult) -> str:
    lines = [
        "# DATABASE ANALYSIS REPORT",
        "",
        f"Generated: {result.generated_at}",
        f"Database: {result.database}",
        f"Total Collections: {len(result.collections)}",
        "",
        "## Collections Overview",
        "",
        "| Collection | Document Count | Indexes | Quality Issues |",
        "|------------|---------------|---------|----------------|",
    ]
    for name, data in result.collections.items():
        if data.error:
            lines.append(f"| {name} | ERROR | - | {_cell(data.error)} |")
        else:
            lines.append(f"| {name} | {data.document_count} | {len(data.indexes)} | {data.quality.total_issues} |")

    lines += ["", "## Detailed Collection Analysis", ""]
    for name, data in result.collections.items():
        if data.error:
            continue
        lines += [
            f"### {name}",
            "",
            f"**Document Count:** {data.document_count}",
            "",
            "**Schema:**",
            "",
            "| Field | Presence | Types | Null Count | Sample Values |",
            "|-------|----------|-------|------------|---------------|",
        ]
        for path, stat in data.schema.fields.items():
            types = ", ".join(sorted(t.value for t in stat.observed_types))
            samples = json.dumps(list(stat.sample_values), default=str)[:50]
            lines.append(f"| {path} | {stat.presence_ratio * 100:.1f}% | {types} | {stat.null_count} | {_cell(samples)}... |")

        lines += ["", "**Indexes:**", ""]
        lines += _json_block([dict(i) for i in data.indexes])
        if data.sample_document is not None:
            lines += ["**Sample Document:**", ""]
            lines += _json_block(data.sample_document)
        lines += ["---", ""]
    return "\n".join(lines)


def relationship_report(result: AuditResult) -> str:
    lines = [
        "# RELATIONSHIP ANALYSIS REPORT",
        "",
        f"Generated: {result.generated_at}",
        "",
        "## Relationship Summary",
        "",
        "| From | To | Checked | Valid | Invalid | Missing | Valid % |",
        "|------|----|---------|-------|---------|---------|---------|",
    ]
    for rel in result.relationships:
        d = rel.descriptor
        if rel.error:
            lines.append(f"| {d.source_path} | {d.target_path} | ERROR | - | - | - | {_cell(rel.error)} |")
        else:
            lines.append(
                f"| {d.source_path} | {d.target_path} | {rel.checked} | {rel.valid} | "
                f"{rel.invalid} | {rel.missing} | {rel.valid_percent}% |"
            )

    lines += ["", "## Detailed Analysis", ""]
    for rel in result.relationships:
        d = rel.descriptor
        unit = "Array Items Checked" if d.is_array else "Documents Checked"
        lines += [f"### {d.source_path} -> {d.target_path}", ""]
        if rel.error:
            lines += [f"- **Error:** {rel.error}", ""]
        else:
            lines += [
                f"- **{unit}:** {rel.checked}",
                f"- **Valid References:** {rel.valid} ({rel.valid_percent}%)",
                f"- **Invalid References:** {rel.invalid}",
                f"- **Missing References:** {rel.missing}",
                "",
            ]
        if rel.orphan_samples:
            lines += ["**Orphaned Reference Samples:**", ""]
            lines += _json_block(list(rel.orphan_samples))
        lines += ["---", ""]
    return "\n".join(lines)


def data_quality_report(result: AuditResult) -> str:
    lines = [
        "# DATA QUALITY REPORT",
        "",
        f"Generated: {result.generated_at}",
        "",
        "## Quality Summary",
        "",
        "| Collection | Total Docs Sampled | Total Issues |",
        "|------------|-------------------|--------------|",
    ]
    for name, data in result.collections.items():
        if data.error:
            continue
        lines.append(f"| {name} | {data.quality.total_docs} | {data.quality.total_issues} |")

    lines += ["", "## Detailed Issues by Collection", ""]
    for name, data in result.collections.items():
        quality = data.quality
        if data.error or quality.total_issues == 0:
            continue
        lines += [f"### {name}", "", f"**Total Issues:** {quality.total_issues}", ""]
        if quality.issue_counts:
            lines.append("**By Check:** " + ", ".join(
                f"{check.value}={n}" for check, n in quality.issue_counts.items()
            ))
            lines.append("")
        lines += [f"**Issues (showing first {len(quality.issues)}):**", ""]
        lines += [f"- {issue}" for issue in quality.issues]
        lines += ["", "---", ""]
    return "\n".join(lines)


def migration_plan_report(result: AuditResult) -> str:
    counts = priority_counts(list(result.migrations))
    lines = [
        "# MIGRATION PLAN",
        "",
        f"Generated: {result.generated_at}",
        "",
        "## Migration Summary",
        "",
    ]
    lines += [f"- **{p.value} Priority:** {counts[p]}" for p in Priority]
    lines += ["", "## Migrations by Collection", ""]

    for plan in result.migrations:
        lines += [f"### {plan.collection}", ""]
        for task in plan.tasks:
            lines += [
                f"#### {task.type.value} ({task.priority.value} Priority)",
                "",
                f"**Description:** {task.description}",
                "",
            ]
            if task.affected_docs:
                lines += [f"**Affected Documents:** ~{task.affected_docs}", ""]
            lines += [f"**Migration Script:** `{task.script}`", "", "---", ""]

    lines += ["## Recommended Migration Order", ""]
    for phase in result.phases:
        lines.append(f"{phase.number}. **Phase {phase.number} - {phase.priority.value} Priority** ({phase.title})")
        lines += [f"   - {action}" for action in PHASE_ACTIONS[phase.priority]]
        for task in phase.tasks:
            lines.append(f"   - `{task.script}`")
        lines.append("")
    return "\n".join(lines)


def critical_issues(result: AuditResult) -> List[str]:
    """Broken relationships, then collections with many quality issues."""
    issues = []
    for rel in result.relationships:
        if rel.invalid > 0:
            issues.append(
                f"{rel.descriptor.source_path} -> {rel.descriptor.target_path}: "
                f"{rel.invalid} broken references"
            )
    for name, data in result.collections.items():
        if data.quality.total_issues > CRITICAL_QUALITY_THRESHOLD:
            issues.append(f"{name}: {data.quality.total_issues} data quality issues")
    return issues


def summary_report(result: AuditResult) -> str:
    collections = result.collections.values()
    with_data = sum(1 for c in collections if not c.error and (c.document_count or 0) > 0)
    empty = sum(1 for c in collections if not c.error and c.document_count == 0)
    failed = sum(1 for c in collections if c.error)
    total_issues = sum(c.quality.total_issues for c in collections)
    broken = sum(1 for r in result.relationships if r.invalid > 0)
    counts = priority_counts(list(result.migrations))

    lines = [
        "# DATABASE AUDIT SUMMARY",
        "",
        f"Generated: {result.generated_at}",
        f"Database: {result.database}",
        "",
    ]
    if result.cancelled:
        lines += ["**Audit was cancelled; results are partial.**", ""]

    lines += [
        "## Collections",
        "",
        f"- **Total Collections:** {len(result.collections)}",
        f"- **Collections with Data:** {with_data}",
        f"- **Empty Collections:** {empty}",
        f"- **Unreadable Collections:** {failed}",
        "",
        "## Data Quality",
        "",
        f"- **Total Quality Issues:** {total_issues}",
        "",
        "## Relationships",
        "",
        f"- **Total Relationships Checked:** {len(result.relationships)}",
        f"- **Relationships with Issues:** {broken}",
        "",
        "## Required Migrations",
        "",
        f"- **Total Migrations Needed:** {result.total_tasks}",
    ]
    lines += [f"- **{p.value} Priority:** {counts[p]}" for p in Priority]
    lines += ["", "## Critical Issues", ""]

    critical = critical_issues(result)
    if critical:
        lines += [f"- {issue}" for issue in critical]
    else:
        lines.append("No critical issues found!")

    lines += [
        "",
        "## Recommendations",
        "",
        "1. **Immediate Actions:**",
        "   - Review and fix broken relationships",
        "   - Execute HIGH priority migrations",
        "",
        "2. **Short-term Actions:**",
        "   - Execute MEDIUM priority migrations",
        "   - Implement data validation on write operations",
        "",
        "3. **Long-term Actions:**",
        "   - Execute LOW priority migrations",
        "   - Set up data quality monitoring",
        "   - Implement schema validation",
        "",
        "## Generated Reports",
        "",
    ]
    lines += [f"- `{name}` - {desc}" for name, desc in REPORT_FILES]
    lines.append("")
    return "\n".join(lines)


_RENDERERS = {
    "DATABASE_ANALYSIS_REPORT.md": database_analysis_report,
    "RELATIONSHIP_ANALYSIS_REPORT.md": relationship_report,
    "DATA_QUALITY_REPORT.md": data_quality_report,
    "MIGRATION_PLAN.md": migration_plan_report,
    "SUMMARY.md": summary_report,
}


def write_reports(result: AuditResult, output_dir) -> Dict[str, Path]:
    """Write every report into ``output_dir``; return file name -> path."""
    out = Path(output_dir).expanduser().resolve()
    out.mkdir(parents=True, exist_ok=True)

    written: Dict[str, Path] = {}
    for name, render in _RENDERERS.items():
        path = out / name
        path.write_text(render(result), encoding="utf-8")
        written[name] = path
        logger.info(f"  Wrote {name}")

    raw_path = out / RAW_DATA_FILE
    with open(raw_path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    written[RAW_DATA_FILE] = raw_path

    logger.info(f"All reports generated in: {out}")
    return written


def load_result(path) -> AuditResult:
    """Read a raw-analysis-data.json file back into an AuditResult."""
    with open(path, encoding="utf-8") as f:
        return AuditResult.from_dict(json.load(f))
