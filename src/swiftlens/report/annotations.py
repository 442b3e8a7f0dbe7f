"""GitHub Actions workflow-command annotations."""
from __future__ import annotations

from typing import Iterable, List

from ..models.records import Finding, Severity
from ..pipeline import make_relative_path

_LEVELS = {
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "notice",
    Severity.INFO: "notice",
}

# Lower severities stay out of PR annotations.
MIN_SEVERITY = Severity.MEDIUM


def annotation_level(severity: Severity) -> str:
    return _LEVELS[severity]


def escape_message(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def escape_property(value: str) -> str:
    return escape_message(value).replace(":", "%3A").replace(",", "%2C")


def github_annotations(findings: Iterable[Finding], root_path: str) -> List[str]:
    commands: List[str] = []
    for finding in findings:
        if finding.severity < MIN_SEVERITY or finding.line is None:
            continue
        path = make_relative_path(finding.file_path, root_path)
        if path.startswith("./"):
            path = path[2:]
        properties = [f"file={escape_property(path)}", f"line={finding.line}"]
        if finding.column is not None:
            properties.append(f"col={finding.column}")
        properties.append(f"title={escape_property(finding.title)}")
        commands.append(
            f"::{annotation_level(finding.severity)} {','.join(properties)}"
            f"::{escape_message(finding.message)}"
        )
    return commands
