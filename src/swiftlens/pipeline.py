"""Post-processing of findings before they are handed to reporters.

The order of operations used by the CLI is: exclude by pattern, prioritize,
cap, render path style. ``prioritize`` is the only place ordering is decided.
"""
from __future__ import annotations

import os
import re
from collections import Counter
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from .models.records import Finding, Severity

PathStyle = Literal["relative", "absolute"]

_REGEX_SPECIALS = set(".+()[]{}|^$\\")


def _sort_key(finding: Finding) -> Tuple[int, str, int, int, str]:
    missing_line = finding.line is None
    return (
        -finding.severity.rank,
        finding.file_path,
        int(missing_line),
        finding.line if finding.line is not None else 0,
        finding.title,
    )


def prioritize(findings: Iterable[Finding]) -> List[Finding]:
    """Severity desc, then path, line (missing last) and title ascending."""
    return sorted(findings, key=_sort_key)


def cap(findings: Sequence[Finding], limit: Optional[int]) -> Tuple[List[Finding], int]:
    """Keep the first ``limit`` findings; return them with the omitted count."""
    if limit is None:
        return list(findings), 0
    kept = list(findings[: max(limit, 0)])
    return kept, len(findings) - len(kept)


def normalize_path(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


def make_relative_path(file_path: str, root_path: str) -> str:
    """Strip ``root_path + "/"`` from ``file_path``; unchanged when not a descendant."""
    root = normalize_path(root_path)
    standardized = normalize_path(file_path)
    prefix = root.rstrip(os.sep) + os.sep
    if standardized.startswith(prefix):
        return standardized[len(prefix) :].replace(os.sep, "/")
    return file_path


def render_path_style(
    findings: Iterable[Finding], style: PathStyle, root_path: str
) -> List[Finding]:
    rendered: List[Finding] = []
    for finding in findings:
        if style == "absolute":
            path = normalize_path(finding.file_path)
        else:
            path = make_relative_path(finding.file_path, root_path)
        rendered.append(replace(finding, file_path=path))
    return rendered


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate an anchored glob: ``*`` and ``?`` stop at ``/``, ``**`` does not.

    ``**/Tests/**`` therefore matches ``Tests/A.swift`` and ``App/Tests/A.swift``
    but not ``App/UnitTests/A.swift``.
    """
    p = pattern.replace("\\", "/")
    if p.startswith("/"):
        p = p[1:]
    if p.startswith("./"):
        p = p[2:]
    parts = ["^"]
    idx = 0
    while idx < len(p):
        ch = p[idx]
        if ch == "*":
            if p.startswith("**/", idx):
                # `**/` also matches zero directories
                parts.append("(?:.*/)?")
                idx += 3
            elif idx + 1 < len(p) and p[idx + 1] == "*":
                parts.append(".*")
                idx += 2
            else:
                parts.append("[^/]*")
                idx += 1
            continue
        if ch == "?":
            parts.append("[^/]")
        elif ch in _REGEX_SPECIALS:
            parts.append("\\" + ch)
        else:
            parts.append(ch)
        idx += 1
    parts.append("$")
    return re.compile("".join(parts))


def glob_match(path: str, pattern: str) -> bool:
    return glob_to_regex(pattern).match(path.replace("\\", "/")) is not None


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(glob_match(path, pattern) for pattern in patterns)


def exclude_by_pattern(
    findings: Iterable[Finding], patterns: Sequence[str], root_path: str
) -> List[Finding]:
    if not patterns:
        return list(findings)
    return [
        finding
        for finding in findings
        if not matches_any(make_relative_path(finding.file_path, root_path), patterns)
    ]


@dataclass(frozen=True)
class FindingSummary:
    severity_counts: Dict[Severity, int]
    rules_triggered: List[str]
    top_files: List[Tuple[str, int]]
    top_types: List[Tuple[str, int]]

    @property
    def total(self) -> int:
        return sum(self.severity_counts.values())


def summarize(findings: Sequence[Finding], limit: int = 5) -> FindingSummary:
    severity_counts = {severity: 0 for severity in Severity}
    for finding in findings:
        severity_counts[finding.severity] += 1

    per_file = Counter(finding.file_path for finding in findings)
    top_files = sorted(per_file.items(), key=lambda item: (-item[1], item[0]))[:limit]

    largest: Dict[str, int] = {}
    for finding in findings:
        raw = finding.evidence.get("lineCount")
        if not finding.type_name or raw is None or not raw.isdigit():
            continue
        largest[finding.type_name] = max(largest.get(finding.type_name, 0), int(raw))
    top_types = sorted(largest.items(), key=lambda item: (-item[1], item[0]))[:limit]

    return FindingSummary(
        severity_counts=severity_counts,
        rules_triggered=sorted({finding.rule_id for finding in findings}),
        top_files=top_files,
        top_types=top_types,
    )


def meets_threshold(findings: Iterable[Finding], threshold: Optional[Severity]) -> bool:
    """True when any finding is at or above ``threshold`` (``None`` disables)."""
    if threshold is None:
        return False
    return any(finding.severity >= threshold for finding in findings)
