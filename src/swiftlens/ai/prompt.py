"""Prompt construction for AI recommendations."""
from __future__ import annotations

from typing import List, Sequence

from ..exceptions import AIGenerationError
from ..models.records import Finding
from .client import AIClient

AI_SECTION_HEADER = "## AI Recommendations"

INSTRUCTIONS = """You are a senior iOS engineer reviewing a Swift codebase named {project}.
Produce an actionable refactoring report in Markdown.

Requirements:
- Group issues by severity (high to low).
- For each issue: explain the likely root cause, why it matters, and propose 1-3 concrete refactoring steps.
- Provide a short code example only if confident; keep examples minimal.
- Include a "Risk & Verification" checklist for each issue.
- Be specific to iOS/Swift best practices. Avoid generic advice.

Findings:
{findings}"""


def select_findings(findings: Sequence[Finding], limit: int) -> List[Finding]:
    """The first ``limit`` findings; a non-positive limit selects nothing."""
    if limit <= 0:
        return []
    return list(findings[:limit])


def _describe(finding: Finding) -> str:
    location = f"{finding.file_path}:{finding.line}" if finding.line is not None else finding.file_path
    evidence = ", ".join(f"{key}={value}" for key, value in sorted(finding.evidence.items()))
    lines = [
        f"- ruleID: {finding.rule_id}",
        f"  title: {finding.title}",
        f"  severity: {finding.severity.value}",
        f"  file: {location}",
        f"  message: {finding.message}",
        f"  evidence: {evidence or 'none'}",
    ]
    if finding.snippet is None:
        lines.append("  snippet: null")
    else:
        lines.append("  snippet: |")
        lines.extend(f"    {line}" for line in finding.snippet.split("\n"))
    return "\n".join(lines)


def explain_findings(findings: Sequence[Finding], project_name: str) -> str:
    return INSTRUCTIONS.format(
        project=project_name,
        findings="\n".join(_describe(finding) for finding in findings),
    )


def append_recommendations(
    report: str,
    findings: Sequence[Finding],
    client: AIClient,
    project_name: str,
    limit: int,
) -> str:
    """Append an AI recommendations section to a Markdown report.

    A provider failure appends a note instead; the lint report itself is
    always returned.
    """
    selected = select_findings(findings, limit)
    if not selected:
        return report
    try:
        recommendations = client.generate_markdown(explain_findings(selected, project_name))
    except AIGenerationError as exc:
        return f"{report}\n\n*Note: Failed to retrieve AI recommendations: {exc}*"
    return f"{report}\n\n{AI_SECTION_HEADER}\n\n{recommendations}"
