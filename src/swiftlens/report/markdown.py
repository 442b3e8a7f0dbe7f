from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from ..models.records import Finding, Severity
from ..pipeline import summarize

SEVERITY_ORDER = (Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.INFO)


def render_markdown(
    findings: Sequence[Finding],
    file_count: Optional[int] = None,
    total_findings: Optional[int] = None,
    omitted: int = 0,
) -> str:
    """Render findings grouped by severity, high first.

    Within a group findings keep the order they were given in.
    """
    lines: List[str] = ["## swiftlens Report", ""]
    lines.extend(_summary_lines(findings, file_count, total_findings, omitted))
    lines.append("")
    if not findings:
        lines.append("_No issues detected by enabled rules._")
        lines.append("")
        return "\n".join(lines)

    number = 0
    for severity in SEVERITY_ORDER:
        group = [finding for finding in findings if finding.severity is severity]
        if not group:
            continue
        lines.append(f"### {severity.value.capitalize()}")
        lines.append("")
        for finding in group:
            number += 1
            lines.append(f"#### Finding {number}: {finding.title}")
            lines.append(_location_line(finding))
            lines.append(f"- Message: {finding.message}")
            lines.append("- Evidence:")
            lines.extend(_evidence_lines(finding.evidence))
            lines.append("")
    return "\n".join(lines)


def _summary_lines(
    findings: Sequence[Finding],
    file_count: Optional[int],
    total_findings: Optional[int],
    omitted: int,
) -> List[str]:
    summary = summarize(findings)
    counts = summary.severity_counts
    total = total_findings if total_findings is not None else len(findings)
    rules = ", ".join(summary.rules_triggered) or "none"
    top_files = " | ".join(f"{path} ({count})" for path, count in summary.top_files) or "none"
    top_types = " | ".join(f"{name} ({count}L)" for name, count in summary.top_types) or "none"
    lines = [
        "- Summary: machine-generated findings overview",
        f"- Swift files scanned: {file_count if file_count is not None else 'n/a'}",
        f"- Total findings: {total}",
        (
            f"- Severity breakdown: high {counts[Severity.HIGH]}, "
            f"medium {counts[Severity.MEDIUM]}, low {counts[Severity.LOW]}, "
            f"info {counts[Severity.INFO]}"
        ),
        f"- Rules triggered: {rules}",
    ]
    if omitted:
        lines.append(f"- Omitted by max findings: {omitted}")
    lines.append(f"- Top 5 files by findings: {top_files}")
    lines.append(f"- Top 5 types by size: {top_types}")
    return lines


def _location_line(finding: Finding) -> str:
    meta = f"- File: `{finding.file_path}`"
    if finding.type_name:
        meta += f" [{finding.type_name}]"
    if finding.line is not None:
        meta += f":{finding.line}"
    method = finding.evidence.get("countingMethod")
    if method:
        meta += f" (Counting method: {method}"
        confidence = finding.evidence.get("countingConfidence")
        if confidence:
            meta += f", Confidence: {confidence}"
        meta += ")"
    return meta


def _evidence_lines(evidence: Mapping[str, str]) -> List[str]:
    rows = [f"  - {key}: {value}" for key, value in sorted(evidence.items()) if value]
    return rows or ["  - none"]
